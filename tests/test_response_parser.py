# tests/test_response_parser.py
import pytest

from brouter_client.core.exceptions import (
    EmptyRoute,
    InvalidRequest,
    MalformedResponse,
    MissingDataFile,
    NoRouteFound,
    PassTimeout,
)
from brouter_client.models.routing import Point
from brouter_client.services.response_parser import diagnose, parse_response


def test_parse_gpx_track(sample_gpx):
    result = parse_response(sample_gpx)

    assert result.name == "brouter_trekking_0"
    assert result.points == [
        Point(lat=52.3676, lon=4.9041),
        Point(lat=52.3, lon=4.95),
        Point(lat=52.2, lon=5.05),
        Point(lat=52.0907, lon=5.1214),
    ]
    # Elevation is optional per point
    assert [s.elevation for s in result.samples] == [-1.5, 0.25, None, 4.0]


def test_gpx_summary_comment(sample_gpx):
    result = parse_response(sample_gpx)
    assert result.track_length == 42315
    assert result.filtered_ascend == 12
    assert result.plain_ascend == -3
    assert result.cost == 52104
    assert result.total_time == 2 * 3600 + 3 * 60 + 4
    assert result.length == 42315


def test_cumulative_distance(sample_gpx):
    samples = parse_response(sample_gpx).samples
    distances = [s.distance for s in samples]
    assert distances[0] == 0.0
    assert all(b > a for a, b in zip(distances, distances[1:]))
    # Straight-line Amsterdam -> Utrecht is roughly 35 km
    assert 30_000 < distances[-1] < 45_000


TRACK_BODY = (
    b'<gpx xmlns="http://www.topografix.com/GPX/1/1" version="1.1" creator="test">'
    b"<trk><trkseg>"
    b'<trkpt lat="52.3676" lon="4.9041"/><trkpt lat="52.0907" lon="5.1214"/>'
    b"</trkseg></trk></gpx>"
)


@pytest.mark.parametrize(
    "time_text, expected",
    [
        ("time=1h 5m ", 3900.0),
        ("time=2h ", 7200.0),
        ("time=45s", 45.0),
        ("time=7m 0s", 420.0),
    ],
)
def test_gpx_time_with_omitted_components(time_text, expected):
    header = f"<!-- track-length = 100 cost=120 {time_text} -->".encode()
    result = parse_response(b'<?xml version="1.0" encoding="UTF-8"?>' + header + TRACK_BODY)
    assert result.total_time == expected


def test_gpx_time_without_digits_is_ignored():
    header = b"<!-- track-length = 100 time= -->"
    assert parse_response(header + TRACK_BODY).total_time is None


def test_unknown_output_format_is_invalid_request(sample_gpx):
    with pytest.raises(InvalidRequest):
        parse_response(sample_gpx, "kml")


def test_summary_is_optional():
    payload = (
        b'<?xml version="1.0" encoding="UTF-8"?>'
        b'<gpx xmlns="http://www.topografix.com/GPX/1/1" version="1.1" creator="test">'
        b'<trk><trkseg>'
        b'<trkpt lat="52.3676" lon="4.9041"/><trkpt lat="52.0907" lon="5.1214"/>'
        b"</trkseg></trk></gpx>"
    )
    result = parse_response(payload)
    assert result.track_length is None
    assert result.name is None
    assert result.length == result.samples[-1].distance
    assert all(s.elevation is None for s in result.samples)


def test_parsing_is_idempotent(sample_gpx):
    assert parse_response(sample_gpx) == parse_response(sample_gpx)


def test_geojson_matches_gpx(sample_gpx, sample_geojson):
    assert parse_response(sample_geojson, "geojson") == parse_response(sample_gpx, "gpx")


def test_empty_track_is_empty_route(empty_gpx):
    with pytest.raises(EmptyRoute):
        parse_response(empty_gpx)


def test_empty_feature_collection_is_empty_route():
    with pytest.raises(EmptyRoute):
        parse_response(b'{"type": "FeatureCollection", "features": []}', "geojson")


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"not xml at all",
        b"<gpx><trk><trkseg><trkpt lat='x' lon='y'/></trkseg></trk>",
        b"\xff\xfe\x00garbage",
    ],
)
def test_malformed_gpx(payload):
    with pytest.raises(MalformedResponse):
        parse_response(payload)


@pytest.mark.parametrize(
    "payload",
    [
        b"{",
        b'{"type": "FeatureCollection"}',
        b'{"type": "FeatureCollection", "features": [{"type": "Feature", '
        b'"geometry": {"type": "LineString", "coordinates": [[4.9]]}}]}',
    ],
)
def test_malformed_geojson(payload):
    with pytest.raises(MalformedResponse):
        parse_response(payload, "geojson")


def test_malformed_response_carries_context():
    with pytest.raises(MalformedResponse) as excinfo:
        parse_response(b"<html>Bad Gateway</html>")
    assert "Bad Gateway" in excinfo.value.context


def test_engine_messages_are_reported():
    with pytest.raises(MissingDataFile) as excinfo:
        parse_response(b"datafile E5_N50.rd5 not found\n")
    assert excinfo.value.datafile == "E5_N50.rd5"

    with pytest.raises(NoRouteFound) as excinfo:
        parse_response(b"no track found at pass=0\n")
    assert excinfo.value.pass_number == 0

    with pytest.raises(PassTimeout) as excinfo:
        parse_response(b"pass1 timeout after 300 seconds\n")
    assert (excinfo.value.pass_number, excinfo.value.timeout) == (1, 300)


def test_diagnose_unknown_text():
    assert diagnose("everything is fine") is None


def test_to_gpx_round_trip(sample_gpx):
    result = parse_response(sample_gpx)
    again = parse_response(result.to_xml().encode("utf-8"))
    assert again.points == result.points
    assert [s.elevation for s in again.samples] == [s.elevation for s in result.samples]
    assert again.name == result.name
