"""JSON wire format shared by every endpoint.

- field names are lower snake case on the wire (``to_snake_case``)
- unset fields are omitted, never sent as ``null`` (``WireModel``)
- opaque option blocks are plain JSON values carried through untouched
- point-in-time values travel as integer epoch seconds
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, model_serializer

from valhalla_client.errors import FormatError


def to_snake_case(name: str) -> str:
    """``HeadingTolerance`` -> ``heading_tolerance``, ``HTTPStatus`` -> ``http_status``.

    Names already in snake case come back unchanged.
    """
    if not name:
        return name

    out = []
    prev_upper = False
    for i, ch in enumerate(name):
        if ch.isupper():
            if i > 0 and not prev_upper:
                out.append("_")
            elif i > 0 and prev_upper and i < len(name) - 1 and name[i + 1].islower():
                # acronym boundary: the "S" in "HTTPStatus"
                out.append("_")
            out.append(ch.lower())
            prev_upper = True
        else:
            out.append(ch)
            prev_upper = False
    return "".join(out)


class WireModel(BaseModel):
    """Base for request-side models: immutable, snake-case aliases, nulls dropped."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_snake_case,
        populate_by_name=True,
    )

    @model_serializer(mode="wrap")
    def _omit_unset(self, handler) -> Dict[str, Any]:
        # Only this model's own fields; opaque dict values keep their nulls.
        data = handler(self)
        return {k: v for k, v in data.items() if v is not None}


class ResponseShape(str, Enum):
    """Root JSON type an endpoint answers with. Fixed per endpoint."""

    OBJECT = "object"
    ARRAY = "array"


# ---------------------------------------------------------------------------
# Epoch-seconds scalar
# ---------------------------------------------------------------------------

def encode_epoch_seconds(value: datetime) -> int:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() // 1)


def decode_epoch_seconds(value: Any) -> datetime:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FormatError(
            f"Expected integer epoch seconds, got {type(value).__name__}: {value!r}"
        )
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise FormatError(f"Epoch seconds out of range: {value}", cause=e)


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------

def encode_request(request: BaseModel) -> bytes:
    """Serialize a request model to compact UTF-8 JSON.

    Output is deterministic: field order follows the model definition and
    opaque dicts keep their insertion order.
    """
    payload = request.model_dump(mode="json", by_alias=True)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def truncate_body(body: bytes, limit: int) -> str:
    """Byte-capped text view of a body for errors and logs."""
    return body[:limit].decode("utf-8", errors="replace")


def decode_json(body: bytes, shape: ResponseShape, raw_limit: int = 8 * 1024) -> Any:
    """Parse a response body and check its root type.

    ``json.loads`` builds a fresh object tree that shares nothing with
    ``body``, so the caller may release the buffer right away.
    """
    try:
        tree = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(
            f"Failed to deserialize response: {e}",
            cause=e,
            raw_response=truncate_body(body, raw_limit),
        )

    expected = dict if shape is ResponseShape.OBJECT else list
    if not isinstance(tree, expected):
        raise FormatError(
            f"Expected a JSON {shape.value} at the document root, got {type(tree).__name__}",
            raw_response=truncate_body(body, raw_limit),
        )
    return tree
