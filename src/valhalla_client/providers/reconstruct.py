"""Build typed responses from decoded JSON trees.

Each endpoint's root shape is fixed: ``locate`` answers with a bare JSON
array, every other endpoint with an object. ``route`` additionally splits
its result into ``trip`` plus an optional ``alternates`` array, which is
flattened here into one ordered list.
"""
from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from valhalla_client.core.responses import (
    LocateResponse,
    LocateResult,
    MatchedPoint,
    RouteResponse,
    StatusResponse,
    TraceAttributesResponse,
    TraceEdge,
    TraceRouteResponse,
    Trip,
)
from valhalla_client.errors import FormatError

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_RAW_SNIPPET = 8 * 1024


def _snippet(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)[:_RAW_SNIPPET]


def _parse(model: Type[M], value: Any, what: str) -> M:
    try:
        return model.model_validate(value)
    except PydanticValidationError as e:
        raise FormatError(f"Failed to deserialize {what}: {e}", cause=e, raw_response=_snippet(value))


def _parse_list(model: Type[M], value: Any, what: str) -> Optional[List[M]]:
    if not isinstance(value, list):
        return None
    return [_parse(model, item, f"{what}[{i}]") for i, item in enumerate(value)]


def _str(root: Dict[str, Any], key: str) -> Optional[str]:
    v = root.get(key)
    return v if isinstance(v, str) else None


def _bool(root: Dict[str, Any], key: str) -> Optional[bool]:
    v = root.get(key)
    return v if isinstance(v, bool) else None


def _int(root: Dict[str, Any], key: str) -> Optional[int]:
    v = root.get(key)
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return None


# ---------------------------------------------------------------------------
# Per endpoint
# ---------------------------------------------------------------------------

def build_status(root: Dict[str, Any]) -> StatusResponse:
    bbox = root.get("bbox")
    return StatusResponse(
        raw=root,
        version=_str(root, "version"),
        tileset_last_modified=_int(root, "tileset_last_modified"),
        has_tiles=_bool(root, "has_tiles"),
        has_admins=_bool(root, "has_admins"),
        has_timezones=_bool(root, "has_timezones"),
        has_live_traffic=_bool(root, "has_live_traffic"),
        # own copy so mutating one view never shows through the other
        bbox=copy.deepcopy(bbox) if bbox is not None else None,
    )


def build_locate(root: List[Any]) -> LocateResponse:
    """Root-is-array: one result per requested location, in request order."""
    results = [_parse(LocateResult, item, f"locate result[{i}]") for i, item in enumerate(root)]
    return LocateResponse(raw=root, results=results)


def build_route(root: Dict[str, Any]) -> RouteResponse:
    """Primary ``trip`` first, then each ``alternates[i].trip`` in server order."""
    primary = root.get("trip")
    if not isinstance(primary, dict):
        raise FormatError(
            "Route response is missing required 'trip' property.",
            raw_response=_snippet(root),
        )
    trips = [_parse(Trip, primary, "primary 'trip' from route response")]

    alternates = root.get("alternates")
    if isinstance(alternates, list):
        for i, alt in enumerate(alternates):
            if not isinstance(alt, dict) or "trip" not in alt:
                continue
            try:
                trips.append(_parse(Trip, alt["trip"], f"alternate trip {i}"))
            except FormatError as e:
                # the primary trip is valid; drop only the broken alternate
                log.error(
                    "Failed to deserialize response from %s: %s",
                    "route",
                    e.message,
                    extra={"endpoint": "route", "alternate_index": i},
                )

    return RouteResponse(raw=root, id=_str(root, "id"), trips=trips)


def build_trace_route(root: Dict[str, Any]) -> TraceRouteResponse:
    trip = root.get("trip")
    return TraceRouteResponse(
        raw=root,
        id=_str(root, "id"),
        trip=_parse(Trip, trip, "'trip' from trace_route response") if isinstance(trip, dict) else None,
    )


def build_trace_attributes(root: Dict[str, Any]) -> TraceAttributesResponse:
    return TraceAttributesResponse(
        raw=root,
        id=_str(root, "id"),
        units=_str(root, "units"),
        shape=_str(root, "shape"),
        matched_points=_parse_list(MatchedPoint, root.get("matched_points"), "matched_points"),
        edges=_parse_list(TraceEdge, root.get("edges"), "edges"),
    )
