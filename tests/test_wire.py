import json
from datetime import datetime, timezone

import pytest

from valhalla_client.core.models import (
    DateTimeOptions,
    Location,
    RouteRequest,
    SearchFilter,
    StatusRequest,
    TracePoint,
)
from valhalla_client.core.wire import (
    ResponseShape,
    decode_epoch_seconds,
    decode_json,
    encode_epoch_seconds,
    encode_request,
    to_snake_case,
    truncate_body,
)
from valhalla_client.errors import FormatError


@pytest.mark.parametrize(
    "name, expected",
    [
        ("HeadingTolerance", "heading_tolerance"),
        ("DateTime", "date_time"),
        ("HTTPStatus", "http_status"),
        ("lat", "lat"),
        ("heading_tolerance", "heading_tolerance"),
        ("", ""),
    ],
)
def test_to_snake_case(name, expected):
    assert to_snake_case(name) == expected


def test_unset_fields_are_omitted():
    assert encode_request(Location(lat=1.5, lon=2.5)) == b'{"lat":1.5,"lon":2.5}'


def test_nested_unset_fields_are_omitted():
    loc = Location(lat=1, lon=2, search_filter=SearchFilter(exclude_ferry=True))
    assert json.loads(encode_request(loc)) == {"lat": 1.0, "lon": 2.0, "search_filter": {"exclude_ferry": True}}


def test_status_verbose_false_is_sent():
    assert encode_request(StatusRequest()) == b'{"verbose":false}'


def test_encoding_is_deterministic():
    req = RouteRequest(
        locations=[Location(lat=1, lon=2), Location(lat=3, lon=4)],
        costing="auto",
        costing_options={"auto": {"use_tolls": 0.5, "use_highways": 1}},
    )
    assert encode_request(req) == encode_request(req)
    assert encode_request(req).startswith(b'{"locations":[')


def test_opaque_options_pass_through_untouched():
    opts = {"auto": {"UseTolls": None, "nested": [1, {"x": None}]}}
    req = RouteRequest(locations=[Location(lat=1, lon=2), Location(lat=3, lon=4)], costing="auto", costing_options=opts)
    assert json.loads(encode_request(req))["costing_options"] == opts


def test_date_time_travels_as_int_type():
    req = RouteRequest(
        locations=[Location(lat=1, lon=2), Location(lat=3, lon=4)],
        costing="auto",
        date_time=DateTimeOptions(type=1, value="2024-05-01T08:00"),
    )
    assert json.loads(encode_request(req))["date_time"] == {"type": 1, "value": "2024-05-01T08:00"}


def test_trace_point_time_is_epoch_seconds():
    pt = TracePoint(lat=1, lon=2, time=datetime(2020, 1, 1, tzinfo=timezone.utc))
    assert json.loads(encode_request(pt))["time"] == 1577836800


def test_trace_point_time_from_wire():
    pt = TracePoint.model_validate({"lat": 1, "lon": 2, "time": 1577836800})
    assert pt.time == datetime(2020, 1, 1, tzinfo=timezone.utc)


def test_naive_datetime_is_utc():
    assert encode_epoch_seconds(datetime(2020, 1, 1)) == 1577836800


@pytest.mark.parametrize("value", ["1577836800", 1.5, True, None, [1]])
def test_epoch_seconds_rejects_non_integers(value):
    with pytest.raises(FormatError):
        decode_epoch_seconds(value)


def test_decode_json_checks_root_shape():
    assert decode_json(b"[1, 2]", ResponseShape.ARRAY) == [1, 2]
    assert decode_json(b'{"a": 1}', ResponseShape.OBJECT) == {"a": 1}
    with pytest.raises(FormatError):
        decode_json(b"[1, 2]", ResponseShape.OBJECT)
    with pytest.raises(FormatError):
        decode_json(b'{"a": 1}', ResponseShape.ARRAY)


def test_decode_json_malformed_keeps_raw_snippet():
    with pytest.raises(FormatError) as ei:
        decode_json(b"<html>oops</html>", ResponseShape.OBJECT, raw_limit=6)
    assert ei.value.raw_response == "<html>"


def test_truncate_body_counts_bytes():
    # "é" is two bytes; cutting inside it must not raise
    assert truncate_body("aé".encode("utf-8"), 2) == "a�"
