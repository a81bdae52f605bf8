# brouter_client/models/routing.py

from enum import Enum, IntEnum
from pathlib import Path
from typing import Annotated, List, Literal, Optional, Union

import gpxpy.gpx
from pydantic import BaseModel, ConfigDict, Field


class Point(BaseModel):
    """
    Latitude/longitude in degrees. Immutable.
    """
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class OutputFormat(str, Enum):
    GPX = "gpx"
    GEOJSON = "geojson"


class TurnInstructionMode(IntEnum):
    """
    Style of turn instructions embedded in the track (brouter's `timode`).
    """
    NONE = 0
    AUTO_CHOOSE = 1
    LOCUS_STYLE = 2
    OSMAND_STYLE = 3
    COMMENT_STYLE = 4
    GPSIES_STYLE = 5
    ORUX_STYLE = 6
    LOCUS_OLD_STYLE = 7


# --------------------------------------------------------------------------- #
# Areas to avoid
# --------------------------------------------------------------------------- #


def _format_numbers(values: List[float]) -> str:
    return ",".join(repr(float(v)) for v in values)


class NogoPoint(BaseModel):
    """
    A circle around a point that the route must avoid.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["point"] = "point"
    point: Point
    radius: float = Field(gt=0.0, description="Radius in metres.")
    weight: Optional[float] = None

    def encode(self) -> str:
        values = [self.point.lon, self.point.lat, self.radius]
        if self.weight is not None:
            values.append(self.weight)
        return _format_numbers(values)


class NogoLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["line"] = "line"
    points: List[Point]
    weight: Optional[float] = None

    def encode(self) -> str:
        values = [c for p in self.points for c in (p.lon, p.lat)]
        if self.weight is not None:
            values.append(self.weight)
        return _format_numbers(values)


class NogoPolygon(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["polygon"] = "polygon"
    points: List[Point]
    weight: Optional[float] = None

    def encode(self) -> str:
        values = [c for p in self.points for c in (p.lon, p.lat)]
        if self.weight is not None:
            values.append(self.weight)
        return _format_numbers(values)


Nogo = Annotated[Union[NogoPoint, NogoLine, NogoPolygon], Field(discriminator="kind")]


# --------------------------------------------------------------------------- #
# Requests
# --------------------------------------------------------------------------- #


class RouteRequest(BaseModel):
    """
    A validated, backend-agnostic route request.

    Build it with brouter_client.services.request_builder.build_request, which
    checks the invariants; the model itself only stores the result.
    """
    model_config = ConfigDict(frozen=True)

    points: List[Point]
    profile: str
    alternative_index: Optional[int] = None
    output_format: OutputFormat = OutputFormat.GPX
    nogos: List[Nogo] = []
    turn_instruction_mode: Optional[TurnInstructionMode] = None
    track_name: Optional[str] = None
    export_waypoints: bool = False


# --------------------------------------------------------------------------- #
# Results
# --------------------------------------------------------------------------- #


class TrackSample(BaseModel):
    """
    One sample of a computed track.

    distance is cumulative, in metres from the first sample.
    """
    model_config = ConfigDict(frozen=True)

    point: Point
    elevation: Optional[float] = None
    distance: Optional[float] = None


class RouteResult(BaseModel):
    """
    A computed route as an ordered track, plus the summary values brouter
    reports alongside it when present.
    """
    name: Optional[str] = None
    samples: List[TrackSample]

    track_length: Optional[float] = None  # metres
    filtered_ascend: Optional[float] = None  # metres
    plain_ascend: Optional[float] = None  # metres
    cost: Optional[float] = None
    total_time: Optional[float] = None  # seconds

    @property
    def points(self) -> List[Point]:
        return [s.point for s in self.samples]

    @property
    def length(self) -> float:
        """
        Track length in metres: the engine's own figure when reported,
        otherwise the cumulative distance of the last sample.
        """
        if self.track_length is not None:
            return self.track_length
        if self.samples and self.samples[-1].distance is not None:
            return self.samples[-1].distance
        return 0.0

    def to_gpx(self) -> gpxpy.gpx.GPX:
        gpx = gpxpy.gpx.GPX()
        gpx.creator = "brouter-client"
        track = gpxpy.gpx.GPXTrack(name=self.name)
        segment = gpxpy.gpx.GPXTrackSegment()
        for sample in self.samples:
            segment.points.append(
                gpxpy.gpx.GPXTrackPoint(
                    latitude=sample.point.lat,
                    longitude=sample.point.lon,
                    elevation=sample.elevation,
                )
            )
        track.segments.append(segment)
        gpx.tracks.append(track)
        return gpx

    def to_xml(self) -> str:
        return self.to_gpx().to_xml()


# --------------------------------------------------------------------------- #
# Local engine state and backend selection
# --------------------------------------------------------------------------- #


class EngineStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    EXTRACTING = "extracting"
    READY = "ready"
    FAILED = "failed"


class LocalEngineState(BaseModel):
    """
    Where the local engine lives on disk and how far it got.

    Owned by a Router; only the extraction step mutates it.
    """
    cache_root: Path
    status: EngineStatus = EngineStatus.UNINITIALIZED
    engine_dir: Optional[Path] = None

    @property
    def bundle_dir(self) -> Path:
        return self.cache_root / "engine"

    @property
    def marker_file(self) -> Path:
        return self.bundle_dir / ".complete"

    @property
    def lock_file(self) -> Path:
        return self.cache_root / "engine.lock"


class RemoteSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    url: str


class LocalSelection(BaseModel):
    kind: Literal["local"] = "local"
    state: LocalEngineState
    archive: Optional[Union[Path, bytes]] = None


BackendSelection = Union[RemoteSelection, LocalSelection]
