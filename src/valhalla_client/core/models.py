from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import field_serializer, field_validator

from valhalla_client.core.wire import WireModel, decode_epoch_seconds, encode_epoch_seconds


class CostingModel:
    """Well-known costing identifiers.

    Costing fields stay plain strings so new server-side modes work
    without a client release.
    """

    AUTO = "auto"
    BICYCLE = "bicycle"
    PEDESTRIAN = "pedestrian"
    MOTORCYCLE = "motorcycle"
    MOTOR_SCOOTER = "motor_scooter"
    BUS = "bus"
    TRUCK = "truck"
    TAXI = "taxi"
    MULTIMODAL = "multimodal"
    BIKESHARE = "bikeshare"


class DateTimeType(IntEnum):
    CURRENT = 0
    DEPART_AT = 1
    ARRIVE_BY = 2
    INVARIANT = 3


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------

class SearchFilter(WireModel):
    exclude_tunnel: Optional[bool] = None
    exclude_bridge: Optional[bool] = None
    exclude_ramp: Optional[bool] = None
    exclude_closures: Optional[bool] = None
    exclude_toll: Optional[bool] = None
    exclude_ferry: Optional[bool] = None
    exclude_cash_only_tolls: Optional[bool] = None
    min_road_class: Optional[str] = None
    max_road_class: Optional[str] = None


class Location(WireModel):
    """A waypoint for route/locate requests (also echoed back inside trips)."""

    lat: float
    lon: float
    type: Optional[str] = None     # "break", "through", "via", "break_through"
    name: Optional[str] = None

    heading: Optional[float] = None             # 0..360
    heading_tolerance: Optional[float] = None   # 0..180

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    display_lat: Optional[float] = None
    display_lon: Optional[float] = None
    preferred_side: Optional[str] = None

    radius: Optional[float] = None              # metres, >= 0
    minimum_reachability: Optional[int] = None
    rank_candidates: Optional[bool] = None
    search_cutoff: Optional[float] = None
    node_snap_tolerance: Optional[float] = None
    street_side_tolerance: Optional[float] = None
    search_filter: Optional[SearchFilter] = None
    preferred_layer: Optional[int] = None
    waiting: Optional[int] = None


class TracePoint(WireModel):
    """A GPS sample for map matching."""

    lat: float
    lon: float
    type: Optional[str] = None
    time: Optional[datetime] = None   # wire: integer epoch seconds
    radius: Optional[float] = None    # metres, 0..100

    @field_validator("time", mode="before")
    @classmethod
    def _time_from_wire(cls, v: Any) -> Any:
        if v is None or isinstance(v, datetime):
            return v
        return decode_epoch_seconds(v)

    @field_serializer("time")
    def _time_to_wire(self, v: Optional[datetime]) -> Optional[int]:
        return None if v is None else encode_epoch_seconds(v)


class TraceOptions(WireModel):
    search_radius: Optional[float] = None   # metres, 0..100
    gps_accuracy: Optional[float] = None
    breakage_distance: Optional[float] = None
    interpolation_distance: Optional[float] = None


class FilterAttributes(WireModel):
    attributes: Optional[List[str]] = None
    action: Optional[str] = None   # "include" | "exclude", any case


class DateTimeOptions(WireModel):
    # int rather than DateTimeType so out-of-range values reach the validator
    type: int
    value: Optional[str] = None    # "YYYY-MM-DDTHH:MM", required for depart_at/arrive_by


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class StatusRequest(WireModel):
    # always sent: absent and false mean the same thing to the server
    verbose: bool = False


class LocateRequest(WireModel):
    locations: List[Location]
    costing: str
    costing_options: Optional[Dict[str, Any]] = None
    verbose: Optional[bool] = None
    units: Optional[str] = None
    id: Optional[str] = None


class RouteRequest(WireModel):
    locations: List[Location]
    costing: str
    units: Optional[str] = None
    language: Optional[str] = None
    directions_type: Optional[str] = None
    format: Optional[str] = None
    costing_options: Optional[Dict[str, Any]] = None
    date_time: Optional[DateTimeOptions] = None
    exclude_locations: Optional[List[Location]] = None
    exclude_polygons: Optional[List[Any]] = None
    id: Optional[str] = None
    # Only honoured by the server for two-location routes; forwarded as-is.
    alternates: Optional[int] = None
    elevation_interval: Optional[int] = None
    roundabout_exits: Optional[bool] = None
    linear_references: Optional[bool] = None


class _TraceRequestBase(WireModel):
    costing: str
    shape: Optional[List[TracePoint]] = None
    encoded_polyline: Optional[str] = None
    begin_time: Optional[int] = None
    durations: Optional[List[int]] = None
    use_timestamps: Optional[bool] = None
    shape_match: Optional[str] = None   # "edge_walk", "map_snap", "walk_or_snap"
    trace_options: Optional[TraceOptions] = None
    costing_options: Optional[Dict[str, Any]] = None


class TraceRouteRequest(_TraceRequestBase):
    format: Optional[str] = None
    units: Optional[str] = None
    language: Optional[str] = None
    directions_type: Optional[str] = None
    linear_references: Optional[bool] = None
    id: Optional[str] = None


class TraceAttributesRequest(_TraceRequestBase):
    filters: Optional[FilterAttributes] = None
    id: Optional[str] = None


def locations_from_pairs(pairs: List[tuple], **kwargs: Any) -> List[Location]:
    """``[(lat, lon), ...]`` -> ``[Location, ...]`` sharing ``kwargs``."""
    return [Location(lat=lat, lon=lon, **kwargs) for lat, lon in pairs]


def trace_points_from_pairs(pairs: List[tuple]) -> List[TracePoint]:
    return [TracePoint(lat=lat, lon=lon) for lat, lon in pairs]
