# brouter_client/services/request_builder.py

from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from brouter_client.core.exceptions import InvalidRequest
from brouter_client.models.routing import (
    Nogo,
    NogoLine,
    NogoPoint,
    NogoPolygon,
    OutputFormat,
    Point,
    RouteRequest,
    TurnInstructionMode,
)
from brouter_client.services.profile_validator import validate_profile

# brouter serves at most four alternatives per route
MAX_ALTERNATIVE_INDEX = 3

PointLike = Union[Point, Tuple[float, float]]


def encode_lonlats(points: Iterable[Point]) -> str:
    """
    Encode points as brouter's `lonlats`: "lon,lat" pairs joined by "|".

    repr(float) is the shortest representation that round-trips, so
    decode_lonlats() recovers the exact same coordinates.
    """
    return "|".join(f"{p.lon!r},{p.lat!r}" for p in points)


def decode_lonlats(lonlats: str) -> List[Point]:
    points: List[Point] = []
    for pair in lonlats.split("|"):
        lon, _, lat = pair.partition(",")
        try:
            points.append(Point(lat=float(lat), lon=float(lon)))
        except (ValueError, ValidationError) as exc:
            raise InvalidRequest(f"Cannot decode point {pair!r}", {"pair": pair}) from exc
    return points


def _to_point(value: PointLike) -> Point:
    if isinstance(value, Point):
        return value
    try:
        lat, lon = value
        return Point(lat=lat, lon=lon)
    except (TypeError, ValueError, ValidationError) as exc:
        raise InvalidRequest(f"Invalid waypoint: {value!r}", {"point": repr(value)}) from exc


def build_request(
    points: Sequence[PointLike],
    profile: str,
    alternative_index: Optional[int] = None,
    output_format: Union[OutputFormat, str] = OutputFormat.GPX,
    nogos: Sequence[Nogo] = (),
    turn_instruction_mode: Optional[TurnInstructionMode] = None,
    track_name: Optional[str] = None,
    export_waypoints: bool = False,
) -> RouteRequest:
    """
    Validate the inputs and assemble a RouteRequest.

    Points may be Point instances or (lat, lon) tuples; their order is kept
    as given, since it defines the direction of the route.

    Raises InvalidRequest for fewer than two points, out-of-range
    coordinates, an alternative index outside 0..3 or an unsupported output
    format, and InvalidProfile for a bad profile name.
    """
    if len(points) < 2:
        raise InvalidRequest(
            f"At least two points are required, got {len(points)}.",
            {"point_count": len(points)},
        )
    waypoints = [_to_point(p) for p in points]

    validate_profile(profile)

    if alternative_index is not None and not 0 <= alternative_index <= MAX_ALTERNATIVE_INDEX:
        raise InvalidRequest(
            f"Alternative index must be between 0 and {MAX_ALTERNATIVE_INDEX}, "
            f"got {alternative_index}.",
            {"alternative_index": alternative_index},
        )

    try:
        fmt = OutputFormat(output_format)
    except ValueError as exc:
        raise InvalidRequest(
            f"Unsupported output format: {output_format!r}",
            {"output_format": str(output_format)},
        ) from exc

    try:
        return RouteRequest(
            points=waypoints,
            profile=profile,
            alternative_index=alternative_index,
            output_format=fmt,
            nogos=list(nogos),
            turn_instruction_mode=turn_instruction_mode,
            track_name=track_name,
            export_waypoints=export_waypoints,
        )
    except ValidationError as exc:
        raise InvalidRequest(
            f"Invalid route options: {exc.error_count()} error(s)",
            {"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def request_params(request: RouteRequest) -> Dict[str, str]:
    """
    Ordered parameter mapping for a request.

    Both the remote query string and the local engine command line are
    derived from this mapping.
    """
    params: Dict[str, str] = {
        "lonlats": encode_lonlats(request.points),
        "profile": request.profile,
    }
    if request.alternative_index is not None:
        params["alternativeidx"] = str(request.alternative_index)
    params["format"] = request.output_format.value
    if request.turn_instruction_mode is not None:
        params["timode"] = str(int(request.turn_instruction_mode))

    nogos = "|".join(n.encode() for n in request.nogos if isinstance(n, NogoPoint))
    polylines = "|".join(n.encode() for n in request.nogos if isinstance(n, NogoLine))
    polygons = "|".join(n.encode() for n in request.nogos if isinstance(n, NogoPolygon))
    if nogos:
        params["nogos"] = nogos
    if polylines:
        params["polylines"] = polylines
    if polygons:
        params["polygons"] = polygons

    if request.export_waypoints:
        params["exportWaypoints"] = "1"
    if request.track_name:
        params["trackname"] = request.track_name
    return params
