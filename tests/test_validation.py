import pytest

from valhalla_client.core import validation
from valhalla_client.core.models import (
    DateTimeOptions,
    FilterAttributes,
    LocateRequest,
    Location,
    RouteRequest,
    TraceAttributesRequest,
    TraceOptions,
    TracePoint,
    TraceRouteRequest,
    trace_points_from_pairs,
)
from valhalla_client.errors import ValidationError

A = Location(lat=47.61, lon=-122.33)
B = Location(lat=47.66, lon=-122.30)
SHAPE = trace_points_from_pairs([(47.61, -122.33), (47.62, -122.32)])


def _route(**kwargs) -> RouteRequest:
    kwargs.setdefault("locations", [A, B])
    kwargs.setdefault("costing", "auto")
    return RouteRequest(**kwargs)


def test_valid_route_passes():
    validation.validate_route_request(_route(alternates=2))


@pytest.mark.parametrize("lat, lon", [(-90, -180), (90, 180), (0, 0)])
def test_coordinate_bounds_inclusive(lat, lon):
    validation.validate_coordinates("p", lat, lon)


@pytest.mark.parametrize("lat, lon, bad", [(90.0001, 0, "p.lat"), (-91, 0, "p.lat"), (0, 180.5, "p.lon")])
def test_coordinates_out_of_range(lat, lon, bad):
    with pytest.raises(ValidationError) as ei:
        validation.validate_coordinates("p", lat, lon)
    assert ei.value.field == bad


def test_route_needs_two_locations():
    with pytest.raises(ValidationError) as ei:
        validation.validate_route_request(_route(locations=[A]))
    assert ei.value.field == "locations"


@pytest.mark.parametrize("costing", ["", "   "])
def test_route_needs_costing(costing):
    with pytest.raises(ValidationError) as ei:
        validation.validate_route_request(_route(costing=costing))
    assert ei.value.field == "costing"


def test_unknown_costing_is_accepted():
    validation.validate_route_request(_route(costing="some_future_mode"))


def test_route_location_field_path():
    bad = Location(lat=91, lon=0)
    with pytest.raises(ValidationError) as ei:
        validation.validate_route_request(_route(locations=[A, bad]))
    assert ei.value.field == "locations[1].lat"
    assert ei.value.value == 91


@pytest.mark.parametrize(
    "loc, field",
    [
        (Location(lat=0, lon=0, heading=361), "locations[0].heading"),
        (Location(lat=0, lon=0, heading_tolerance=181), "locations[0].heading_tolerance"),
        (Location(lat=0, lon=0, radius=-1), "locations[0].radius"),
    ],
)
def test_route_location_extras(loc, field):
    with pytest.raises(ValidationError) as ei:
        validation.validate_route_request(_route(locations=[loc, B]))
    assert ei.value.field == field


def test_locate_does_not_check_heading():
    validation.validate_locate_request(
        LocateRequest(locations=[Location(lat=0, lon=0, heading=400, radius=-5)], costing="auto")
    )


def test_locate_needs_a_location():
    with pytest.raises(ValidationError):
        validation.validate_locate_request(LocateRequest(locations=[], costing="auto"))


def test_negative_alternates():
    with pytest.raises(ValidationError) as ei:
        validation.validate_route_request(_route(alternates=-1))
    assert ei.value.field == "alternates"


def test_date_time_type_range():
    with pytest.raises(ValidationError) as ei:
        validation.validate_route_request(_route(date_time=DateTimeOptions(type=4)))
    assert ei.value.field == "date_time.type"


@pytest.mark.parametrize("kind", [1, 2])
def test_date_time_value_required_for_depart_and_arrive(kind):
    with pytest.raises(ValidationError) as ei:
        validation.validate_route_request(_route(date_time=DateTimeOptions(type=kind)))
    assert ei.value.field == "date_time.value"


def test_date_time_current_needs_no_value():
    validation.validate_route_request(_route(date_time=DateTimeOptions(type=0)))


def test_trace_shape_and_polyline_are_exclusive():
    with pytest.raises(ValidationError):
        validation.validate_trace_request(
            TraceRouteRequest(costing="auto", shape=SHAPE, encoded_polyline="_izlhA~rlgdF")
        )


def test_trace_needs_shape_or_polyline():
    with pytest.raises(ValidationError):
        validation.validate_trace_request(TraceRouteRequest(costing="auto"))
    with pytest.raises(ValidationError):
        validation.validate_trace_request(TraceRouteRequest(costing="auto", encoded_polyline="  "))


def test_trace_polyline_alone_is_valid():
    validation.validate_trace_request(TraceRouteRequest(costing="auto", encoded_polyline="_izlhA~rlgdF"))


def test_trace_shape_needs_two_points():
    with pytest.raises(ValidationError) as ei:
        validation.validate_trace_request(TraceRouteRequest(costing="auto", shape=SHAPE[:1]))
    assert ei.value.field == "shape"


def test_trace_point_radius():
    shape = [SHAPE[0], TracePoint(lat=1, lon=1, radius=101)]
    with pytest.raises(ValidationError) as ei:
        validation.validate_trace_request(TraceRouteRequest(costing="auto", shape=shape))
    assert ei.value.field == "shape[1].radius"


def test_trace_search_radius():
    req = TraceRouteRequest(costing="auto", shape=SHAPE, trace_options=TraceOptions(search_radius=100.5))
    with pytest.raises(ValidationError) as ei:
        validation.validate_trace_request(req)
    assert ei.value.field == "trace_options.search_radius"


@pytest.mark.parametrize("action", ["include", "EXCLUDE", "Include"])
def test_filter_action_case_insensitive(action):
    req = TraceAttributesRequest(costing="auto", shape=SHAPE, filters=FilterAttributes(action=action))
    validation.validate_trace_request(req)


def test_filter_action_rejected():
    req = TraceAttributesRequest(costing="auto", shape=SHAPE, filters=FilterAttributes(action="keep"))
    with pytest.raises(ValidationError) as ei:
        validation.validate_trace_request(req)
    assert ei.value.field == "filters.action"
