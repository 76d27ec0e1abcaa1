"""Typed projections of Valhalla responses.

Only the stable, commonly used members are modelled. Every top-level
response also carries ``raw``: the full decoded JSON, so fields not
modelled here stay reachable.

The typed fields are frozen; ``raw`` is a plain dict or list and is not.
It belongs to the caller, and no typed field shares an object with it, so
editing ``raw`` never changes a typed field and vice versa.
"""
from __future__ import annotations

import copy
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from valhalla_client.core import polyline
from valhalla_client.core.models import Location
from valhalla_client.core.wire import to_snake_case


class ResponseModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_snake_case,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Route / trace_route
# ---------------------------------------------------------------------------

class BoundingBox(ResponseModel):
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float


class Maneuver(ResponseModel):
    type: Optional[int] = None
    instruction: Optional[str] = None
    length: Optional[float] = None
    time: Optional[float] = None
    begin_shape_index: Optional[int] = None
    end_shape_index: Optional[int] = None
    street_names: Optional[List[str]] = None


class LegSummary(ResponseModel):
    length: Optional[float] = None
    time: Optional[float] = None
    min_lat: Optional[float] = None
    min_lon: Optional[float] = None
    max_lat: Optional[float] = None
    max_lon: Optional[float] = None

    @property
    def bounding_box(self) -> Optional[BoundingBox]:
        if None in (self.min_lat, self.min_lon, self.max_lat, self.max_lon):
            return None
        return BoundingBox(
            min_lon=self.min_lon, min_lat=self.min_lat, max_lon=self.max_lon, max_lat=self.max_lat
        )


class TripSummary(LegSummary):
    has_time_restrictions: Optional[bool] = None
    has_toll: Optional[bool] = None
    has_highway: Optional[bool] = None
    has_ferry: Optional[bool] = None


class Leg(ResponseModel):
    maneuvers: Optional[List[Maneuver]] = None
    summary: Optional[LegSummary] = None
    shape: Optional[str] = None   # polyline6

    def coordinates(self, precision: int = polyline.DEFAULT_PRECISION) -> List[polyline.LatLon]:
        """Decoded ``shape`` as ``(lat, lon)`` pairs; ``[]`` when absent."""
        if not self.shape:
            return []
        return polyline.decode(self.shape, precision)


class Trip(ResponseModel):
    legs: Optional[List[Leg]] = None
    summary: Optional[TripSummary] = None
    units: Optional[str] = None
    language: Optional[str] = None
    locations: Optional[List[Location]] = None
    status: Optional[int] = None
    status_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Locate
# ---------------------------------------------------------------------------

class EdgeInfo(ResponseModel):
    names: Optional[List[str]] = None
    road_class: Optional[str] = None
    speed: Optional[float] = None
    use: Optional[str] = None
    length: Optional[float] = None
    bridge: Optional[bool] = None
    tunnel: Optional[bool] = None
    toll: Optional[bool] = None


class EdgeCandidate(ResponseModel):
    way_id: Optional[int] = None
    correlated_lat: Optional[float] = None
    correlated_lon: Optional[float] = None
    side_of_street: Optional[str] = None
    percent_along: Optional[float] = None
    distance: Optional[float] = None
    edge_info: Optional[EdgeInfo] = None


class NodeCandidate(ResponseModel):
    lat: Optional[float] = None
    lon: Optional[float] = None
    distance: Optional[float] = None


class LocateResult(ResponseModel):
    """One entry per input location. Empty or null ``edges``/``nodes`` is
    valid data (no road near that point), not an error."""

    input_lat: Optional[float] = None
    input_lon: Optional[float] = None
    edges: Optional[List[EdgeCandidate]] = None
    nodes: Optional[List[NodeCandidate]] = None
    warnings: Optional[List[str]] = None

    @property
    def found(self) -> bool:
        return bool(self.edges) or bool(self.nodes)


# ---------------------------------------------------------------------------
# Trace attributes
# ---------------------------------------------------------------------------

class MatchedPoint(ResponseModel):
    lat: Optional[float] = None
    lon: Optional[float] = None
    type: Optional[str] = None   # "matched", "interpolated", "unmatched"
    edge_index: Optional[int] = None
    distance_along_edge: Optional[float] = None
    distance_from_trace_point: Optional[float] = None


class TraceEdge(ResponseModel):
    names: Optional[List[str]] = None
    length: Optional[float] = None
    speed: Optional[float] = None
    road_class: Optional[str] = None
    begin_shape_index: Optional[int] = None
    end_shape_index: Optional[int] = None
    traffic_segments: Optional[Any] = None

    @field_validator("traffic_segments")
    @classmethod
    def _own_copy(cls, v: Any) -> Any:
        return copy.deepcopy(v)


# ---------------------------------------------------------------------------
# Top-level responses
# ---------------------------------------------------------------------------

class StatusResponse(ResponseModel):
    raw: Any
    version: Optional[str] = None
    tileset_last_modified: Optional[int] = None
    has_tiles: Optional[bool] = None
    has_admins: Optional[bool] = None
    has_timezones: Optional[bool] = None
    has_live_traffic: Optional[bool] = None
    bbox: Optional[Any] = None   # GeoJSON, only with verbose=True


class LocateResponse(ResponseModel):
    raw: Any   # the JSON array root
    results: List[LocateResult]


class RouteResponse(ResponseModel):
    raw: Any
    id: Optional[str] = None
    # index 0 is the primary trip, then alternates in server order
    trips: List[Trip]

    @property
    def trip(self) -> Trip:
        return self.trips[0]

    @property
    def alternates(self) -> List[Trip]:
        return self.trips[1:]


class TraceRouteResponse(ResponseModel):
    raw: Any
    id: Optional[str] = None
    trip: Optional[Trip] = None


class TraceAttributesResponse(ResponseModel):
    raw: Any
    id: Optional[str] = None
    units: Optional[str] = None
    matched_points: Optional[List[MatchedPoint]] = None
    edges: Optional[List[TraceEdge]] = None
    shape: Optional[str] = None

    def coordinates(self, precision: int = polyline.DEFAULT_PRECISION) -> List[polyline.LatLon]:
        if not self.shape:
            return []
        return polyline.decode(self.shape, precision)
