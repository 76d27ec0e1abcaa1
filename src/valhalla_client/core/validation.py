"""Synchronous request checks, run before any network activity.

Each violation raises ``ValidationError`` naming the field and the
constraint. Costing identifiers are only checked for presence so new
server-side modes keep working.

Heading, heading tolerance and radius are checked for route locations
only; locate sends the same ``Location`` type but those fields are not
checked there.
"""
from __future__ import annotations

from typing import Optional, Sequence, Union

from valhalla_client.core.models import (
    DateTimeOptions,
    DateTimeType,
    FilterAttributes,
    LocateRequest,
    Location,
    RouteRequest,
    StatusRequest,
    TraceAttributesRequest,
    TracePoint,
    TraceRouteRequest,
)
from valhalla_client.errors import ValidationError

TraceRequest = Union[TraceRouteRequest, TraceAttributesRequest]

FILTER_ACTIONS = ("include", "exclude")
MAX_TRACE_RADIUS_M = 100.0


def _check_range(field: str, value: Optional[float], lo: float, hi: float, what: str) -> None:
    if value is None:
        return
    if not lo <= value <= hi:
        raise ValidationError(f"{what} must be between {lo:g} and {hi:g}, got {value}", field=field, value=value)


def validate_coordinates(field: str, lat: float, lon: float) -> None:
    _check_range(f"{field}.lat", lat, -90.0, 90.0, "Latitude")
    _check_range(f"{field}.lon", lon, -180.0, 180.0, "Longitude")


def _check_costing(costing: Optional[str]) -> None:
    if costing is None or not costing.strip():
        raise ValidationError("Costing is required.", field="costing", value=costing)


def validate_location(location: Location, field: str = "location") -> None:
    validate_coordinates(field, location.lat, location.lon)


def validate_route_location(location: Location, field: str = "location") -> None:
    validate_location(location, field)
    _check_range(f"{field}.heading", location.heading, 0.0, 360.0, "Heading")
    _check_range(f"{field}.heading_tolerance", location.heading_tolerance, 0.0, 180.0, "Heading tolerance")
    if location.radius is not None and location.radius < 0:
        raise ValidationError(
            f"Radius must be greater than or equal to 0, got {location.radius}",
            field=f"{field}.radius",
            value=location.radius,
        )


def validate_trace_point(point: TracePoint, field: str = "point") -> None:
    validate_coordinates(field, point.lat, point.lon)
    _check_range(f"{field}.radius", point.radius, 0.0, MAX_TRACE_RADIUS_M, "Radius")


def validate_date_time(options: DateTimeOptions, field: str = "date_time") -> None:
    valid = [t.value for t in DateTimeType]
    if options.type not in valid:
        raise ValidationError(
            f"Date/time type must be one of {valid}, got {options.type}",
            field=f"{field}.type",
            value=options.type,
        )
    if options.type in (DateTimeType.DEPART_AT, DateTimeType.ARRIVE_BY) and not (options.value or "").strip():
        raise ValidationError(
            f"Value is required when type is {DateTimeType(options.type).name.lower()}.",
            field=f"{field}.value",
            value=options.value,
        )


def validate_filter_attributes(filters: FilterAttributes, field: str = "filters") -> None:
    if filters.action is not None and filters.action.lower() not in FILTER_ACTIONS:
        raise ValidationError(
            "Filter action must be 'include' or 'exclude' (case-insensitive).",
            field=f"{field}.action",
            value=filters.action,
        )


# ---------------------------------------------------------------------------
# Per-operation
# ---------------------------------------------------------------------------

def validate_status_request(request: StatusRequest) -> None:
    # every field is optional
    return None


def validate_locate_request(request: LocateRequest) -> None:
    if not request.locations:
        raise ValidationError("At least one location is required.", field="locations", value=request.locations)
    _check_costing(request.costing)
    for i, loc in enumerate(request.locations):
        validate_location(loc, f"locations[{i}]")


def validate_route_request(request: RouteRequest) -> None:
    if len(request.locations or ()) < 2:
        raise ValidationError(
            "At least 2 locations are required for routing.",
            field="locations",
            value=len(request.locations or ()),
        )
    _check_costing(request.costing)
    for i, loc in enumerate(request.locations):
        validate_route_location(loc, f"locations[{i}]")
    if request.date_time is not None:
        validate_date_time(request.date_time)
    if request.alternates is not None and request.alternates < 0:
        raise ValidationError(
            f"Alternates must be greater than or equal to 0, got {request.alternates}",
            field="alternates",
            value=request.alternates,
        )


def _validate_shape(shape: Sequence[TracePoint]) -> None:
    if len(shape) < 2:
        raise ValidationError("Shape must contain at least 2 trace points.", field="shape", value=len(shape))
    for i, point in enumerate(shape):
        validate_trace_point(point, f"shape[{i}]")


def validate_trace_request(request: TraceRequest) -> None:
    """Shared rules for trace_route and trace_attributes."""
    _check_costing(request.costing)

    has_shape = request.shape is not None
    has_polyline = bool((request.encoded_polyline or "").strip())
    if has_shape and has_polyline:
        raise ValidationError(
            "Shape and encoded_polyline are mutually exclusive. Provide only one.",
            field="shape",
        )
    if not has_shape and not has_polyline:
        raise ValidationError("Either shape or encoded_polyline must be provided.", field="shape")

    if has_shape:
        _validate_shape(request.shape)

    if request.trace_options is not None:
        _check_range(
            "trace_options.search_radius",
            request.trace_options.search_radius,
            0.0,
            MAX_TRACE_RADIUS_M,
            "Search radius",
        )

    if isinstance(request, TraceAttributesRequest) and request.filters is not None:
        validate_filter_attributes(request.filters)
