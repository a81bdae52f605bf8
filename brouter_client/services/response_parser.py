# brouter_client/services/response_parser.py

import json
import re
from typing import Any, Dict, List, Optional, Tuple, Union

import gpxpy
import gpxpy.geo
import gpxpy.gpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from brouter_client.core.exceptions import (
    EmptyRoute,
    EngineReportedError,
    InvalidRequest,
    MalformedResponse,
    MissingDataFile,
    NoRouteFound,
    PassTimeout,
)
from brouter_client.core.logger import logger
from brouter_client.models.routing import OutputFormat, Point, RouteResult, TrackSample

# Plain-text failures brouter answers with instead of a track
_MISSING_DATAFILE = re.compile(r"datafile (\S+) not found")
_NO_TRACK = re.compile(r"no track found at pass=([0-9]+)")
_PASS_TIMEOUT = re.compile(r"pass([0-9]) timeout after ([0-9]+) seconds")

# Summary comment at the top of brouter's GPX output, e.g.
# <!-- track-length = 5840 filtered ascend = 2 plain-ascend = -1 cost=7395 energy=.1kwh time=15m 4s -->
_GPX_SUMMARY = {
    "track_length": re.compile(r"track-length = (-?[0-9.]+)"),
    "filtered_ascend": re.compile(r"filtered ascend = (-?[0-9.]+)"),
    "plain_ascend": re.compile(r"plain-ascend = (-?[0-9.]+)"),
    "cost": re.compile(r"cost=(-?[0-9.]+)"),
}
_GPX_ROOT = re.compile(r"<gpx[\s>/]")
_GPX_TIME = re.compile(r"time=(?:([0-9]+)h ?)?(?:([0-9]+)m ?)?(?:([0-9]+)s)?")

_SNIPPET_LENGTH = 120


def diagnose(text: str) -> Optional[EngineReportedError]:
    """
    Recognise a brouter failure message in `text`.

    Returns the matching error (not raised), or None when the text carries
    no known message.
    """
    m = _MISSING_DATAFILE.search(text)
    if m:
        return MissingDataFile(m.group(1))
    m = _NO_TRACK.search(text)
    if m:
        return NoRouteFound(int(m.group(1)))
    m = _PASS_TIMEOUT.search(text)
    if m:
        return PassTimeout(int(m.group(1)), int(m.group(2)))
    return None


def _snippet(text: str) -> str:
    return text.strip()[:_SNIPPET_LENGTH]


def _with_distances(coords: List[Tuple[float, float, Optional[float]]]) -> List[TrackSample]:
    samples: List[TrackSample] = []
    total = 0.0
    previous: Optional[Point] = None
    for lat, lon, ele in coords:
        point = Point(lat=lat, lon=lon)
        if previous is not None:
            total += gpxpy.geo.haversine_distance(previous.lat, previous.lon, point.lat, point.lon)
        samples.append(TrackSample(point=point, elevation=ele, distance=total))
        previous = point
    return samples


# --------------------------------------------------------------------------- #
# GPX
# --------------------------------------------------------------------------- #


def _gpx_summary(text: str) -> Dict[str, float]:
    # Only the header comment is searched, not the track body
    m = _GPX_ROOT.search(text)
    head = text[: m.start()] if m else ""
    summary: Dict[str, float] = {}
    for field, pattern in _GPX_SUMMARY.items():
        m = pattern.search(head)
        if m:
            summary[field] = float(m.group(1))
    m = _GPX_TIME.search(head)
    # brouter leaves out zero components, e.g. "time=1h 5m"
    if m and any(m.groups()):
        hours, minutes, seconds = (int(g) if g else 0 for g in m.groups())
        summary["total_time"] = float(hours * 3600 + minutes * 60 + seconds)
    return summary


def _parse_gpx(text: str) -> RouteResult:
    # gpxpy accepts any root element and would return an empty track
    if not _GPX_ROOT.search(text):
        raise MalformedResponse("Payload has no <gpx> root element", _snippet(text))
    try:
        gpx = gpxpy.parse(text)
    except (gpxpy.gpx.GPXException, ValueError) as exc:
        raise MalformedResponse(f"Invalid GPX: {exc}", _snippet(text)) from exc

    coords = [
        (p.latitude, p.longitude, p.elevation)
        for track in gpx.tracks
        for segment in track.segments
        for p in segment.points
    ]
    name = gpx.tracks[0].name if gpx.tracks else None

    try:
        samples = _with_distances(coords)
    except ValidationError as exc:
        raise MalformedResponse("GPX track point out of range", _snippet(text)) from exc

    return RouteResult(name=name, samples=samples, **_gpx_summary(text))


# --------------------------------------------------------------------------- #
# GeoJSON
# --------------------------------------------------------------------------- #


class _LineString(BaseModel):
    type: str
    coordinates: List[List[float]]


class _TrackProperties(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    track_length: Optional[float] = Field(None, alias="track-length")
    filtered_ascend: Optional[float] = Field(None, alias="filtered ascend")
    plain_ascend: Optional[float] = Field(None, alias="plain-ascend")
    total_time: Optional[float] = Field(None, alias="total-time")
    cost: Optional[float] = None


class _Feature(BaseModel):
    type: str
    properties: _TrackProperties = _TrackProperties()
    geometry: _LineString


class _FeatureCollection(BaseModel):
    type: str
    features: List[_Feature]


def _parse_geojson(text: str) -> RouteResult:
    try:
        collection = _FeatureCollection.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise MalformedResponse(f"Invalid GeoJSON: {exc}", _snippet(text)) from exc

    coords: List[Tuple[float, float, Optional[float]]] = []
    for feature in collection.features:
        for position in feature.geometry.coordinates:
            if len(position) < 2:
                raise MalformedResponse(
                    "GeoJSON position needs at least two values", repr(position)
                )
            lon, lat = position[0], position[1]
            ele = position[2] if len(position) > 2 else None
            coords.append((lat, lon, ele))

    try:
        samples = _with_distances(coords)
    except ValidationError as exc:
        raise MalformedResponse("GeoJSON position out of range", _snippet(text)) from exc

    summary: Dict[str, Any] = {}
    if collection.features:
        props = collection.features[0].properties
        summary = props.model_dump(exclude_none=True)
    return RouteResult(samples=samples, **summary)


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #


def parse_response(
    payload: bytes,
    output_format: Union[OutputFormat, str] = OutputFormat.GPX,
) -> RouteResult:
    """
    Decode a brouter payload into a RouteResult.

    Used for both backends: the local engine writes the same formats the
    remote API returns.

    Raises:
        InvalidRequest: `output_format` is not a supported format.
        EngineReportedError: the payload is one of brouter's failure messages.
        MalformedResponse: the payload cannot be decoded.
        EmptyRoute: the payload decoded but holds no track points.
    """
    try:
        fmt = OutputFormat(output_format)
    except ValueError as exc:
        raise InvalidRequest(
            f"Unsupported output format: {output_format!r}",
            {"output_format": str(output_format)},
        ) from exc

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedResponse(
            "Payload is not valid UTF-8",
            f"byte offset {exc.start}",
        ) from exc

    reported = diagnose(text)
    if reported is not None:
        raise reported

    if fmt is OutputFormat.GEOJSON:
        result = _parse_geojson(text)
    else:
        result = _parse_gpx(text)

    if not result.samples:
        raise EmptyRoute("The engine returned a track without points.")

    logger.debug(
        f"Parsed {fmt.value} track with {len(result.samples)} points, "
        f"length {result.length:.0f} m"
    )
    return result
