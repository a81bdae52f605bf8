# brouter_client/cli.py

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from brouter_client.core.config import settings
from brouter_client.core.exceptions import BrouterError
from brouter_client.core.logger import logger
from brouter_client.core.logging_config import setup_logging
from brouter_client.models.routing import (
    LocalEngineState,
    NogoLine,
    NogoPoint,
    NogoPolygon,
    Point,
    TurnInstructionMode,
)
from brouter_client.services.local_engine import LocalEngineManager, default_cache_root
from brouter_client.services.router import Router


def parse_lonlat(value: str) -> Point:
    """
    Parse "lon,lat" (brouter's own order) into a Point.
    """
    try:
        lon, lat = (float(v) for v in value.split(","))
        return Point(lat=lat, lon=lon)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected lon,lat but got {value!r}") from e


def _points_and_weight(values: List[float]):
    # An odd number of values means the last one is the weight
    weight = values.pop() if len(values) % 2 == 1 else None
    points = [Point(lat=values[i + 1], lon=values[i]) for i in range(0, len(values), 2)]
    return points, weight


def parse_nogo(value: str):
    """
    Parse "point:lon,lat,radius[,weight]", "line:lon,lat,...[,weight]" or
    "polygon:lon,lat,...[,weight]".
    """
    kind, _, rest = value.partition(":")
    try:
        numbers = [float(v) for v in rest.split(",")]
        if kind == "point":
            if len(numbers) not in (3, 4):
                raise ValueError("a point nogo takes lon,lat,radius[,weight]")
            weight = numbers[3] if len(numbers) == 4 else None
            return NogoPoint(
                point=Point(lat=numbers[1], lon=numbers[0]), radius=numbers[2], weight=weight
            )
        if kind == "line":
            points, weight = _points_and_weight(numbers)
            return NogoLine(points=points, weight=weight)
        if kind == "polygon":
            points, weight = _points_and_weight(numbers)
            return NogoPolygon(points=points, weight=weight)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid nogo {value!r}: {e}") from e
    raise argparse.ArgumentTypeError(f"unknown nogo type {kind!r} in {value!r}")


def build_broute_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="broute",
        description="Plan a route with brouter and write it as GPX.",
    )
    parser.add_argument(
        "points", metavar="POINT", nargs="+", type=parse_lonlat,
        help="waypoint as lon,lat; the first is the start and the last the end",
    )
    parser.add_argument("--profile", default=settings.DEFAULT_PROFILE)
    parser.add_argument("-o", "--output", type=Path, help="GPX file to write (default: stdout)")
    parser.add_argument("--name", help="name of the route")
    parser.add_argument("--alternative", type=int, help="alternative route index (0-3)")
    parser.add_argument(
        "--turn-instructions", type=int, choices=[m.value for m in TurnInstructionMode],
        help="turn instruction mode",
    )
    parser.add_argument("--export-waypoints", action="store_true")
    parser.add_argument(
        "--nogo", dest="nogos", action="append", type=parse_nogo, default=[],
        help="area to avoid: point:lon,lat,radius[,weight], line:... or polygon:...",
    )
    parser.add_argument("--timeout", type=float, default=settings.REQUEST_TIMEOUT)
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)

    backend = parser.add_argument_group("backend")
    backend.add_argument("--url", default=settings.BASE_URL, help="brouter server URL")
    backend.add_argument(
        "--local", action="store_true", default=settings.BACKEND == "local",
        help="use the locally cached engine instead of a server",
    )
    backend.add_argument("--archive", type=Path, default=settings.ENGINE_ARCHIVE)
    backend.add_argument("--cache-dir", type=Path, default=settings.CACHE_DIR)
    return parser


def broute(argv: Optional[List[str]] = None) -> int:
    args = build_broute_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.local:
        router = Router.local(cache_root=args.cache_dir, archive=args.archive, timeout=args.timeout)
    else:
        router = Router.remote(args.url, timeout=args.timeout)

    try:
        result = router.route(
            args.points,
            args.profile,
            alternative_index=args.alternative,
            nogos=args.nogos,
            turn_instruction_mode=(
                TurnInstructionMode(args.turn_instructions)
                if args.turn_instructions is not None else None
            ),
            track_name=args.name,
            export_waypoints=args.export_waypoints,
        )
    except BrouterError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    xml = result.to_xml()
    if args.output:
        args.output.write_text(xml, encoding="utf-8")
        logger.info(f"Wrote {len(result.samples)} track points to {args.output}")
    else:
        sys.stdout.write(xml)
    return 0


def build_local_brouter_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="local-brouter",
        description="Extract a brouter engine bundle into the local cache.",
    )
    parser.add_argument("--archive", type=Path, default=settings.ENGINE_ARCHIVE)
    parser.add_argument("--cache-dir", type=Path, default=settings.CACHE_DIR)
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    return parser


def local_brouter(argv: Optional[List[str]] = None) -> int:
    args = build_local_brouter_parser().parse_args(argv)
    setup_logging(args.log_level)

    state = LocalEngineState(cache_root=args.cache_dir or default_cache_root())
    manager = LocalEngineManager(state=state, archive=args.archive)
    logger.info(f"Preparing local engine in {state.cache_root}")
    try:
        engine_dir = manager.acquire()
    except BrouterError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    print(engine_dir)
    return 0


def main() -> None:
    sys.exit(broute())


def local_main() -> None:
    sys.exit(local_brouter())


if __name__ == "__main__":
    main()
