"""Encoded polyline codec (Google polyline algorithm, variable precision).

Valhalla uses precision 6 ("polyline6"); some other services use 5.
Coordinates are ``(lat, lon)`` tuples.
"""
from __future__ import annotations

import math
from typing import Iterable, List, Tuple

from valhalla_client.errors import FormatError

LatLon = Tuple[float, float]

DEFAULT_PRECISION = 6


def _check_precision(precision: int) -> None:
    if not 0 <= precision <= 10:
        raise ValueError(f"precision must be between 0 and 10, got {precision}")


def _round_half_away(x: float) -> int:
    # round() is banker's rounding; the format rounds half away from zero
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def _encode_value(value: int, out: List[str]) -> None:
    v = ~(value << 1) if value < 0 else value << 1
    while v >= 0x20:
        out.append(chr((0x20 | (v & 0x1F)) + 63))
        v >>= 5
    out.append(chr(v + 63))


def _decode_value(encoded: str, index: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise FormatError("Malformed or truncated polyline string: unexpected end of input.")
        b = ord(encoded[index]) - 63
        if not 0 <= b < 64:
            raise FormatError(
                f"Malformed polyline string: invalid character {encoded[index]!r} at offset {index}."
            )
        index += 1
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def encode(coordinates: Iterable[LatLon], precision: int = DEFAULT_PRECISION) -> str:
    """Encode ``(lat, lon)`` pairs. An empty sequence gives ``""``."""
    _check_precision(precision)
    factor = 10 ** precision

    out: List[str] = []
    prev_lat = prev_lon = 0
    for lat, lon in coordinates:
        lat_i = _round_half_away(lat * factor)
        lon_i = _round_half_away(lon * factor)
        _encode_value(lat_i - prev_lat, out)
        _encode_value(lon_i - prev_lon, out)
        prev_lat, prev_lon = lat_i, lon_i
    return "".join(out)


def decode(encoded: str, precision: int = DEFAULT_PRECISION) -> List[LatLon]:
    """Decode a polyline string. ``""`` gives ``[]``.

    Raises:
        FormatError: the string is truncated mid-value or contains a
            character outside the encoding's range.
    """
    _check_precision(precision)
    factor = 10 ** precision

    coords: List[LatLon] = []
    index = 0
    lat = lon = 0
    while index < len(encoded):
        d_lat, index = _decode_value(encoded, index)
        if index >= len(encoded):
            raise FormatError("Malformed or truncated polyline string: latitude without longitude.")
        d_lon, index = _decode_value(encoded, index)
        lat += d_lat
        lon += d_lon
        coords.append((lat / factor, lon / factor))
    return coords
