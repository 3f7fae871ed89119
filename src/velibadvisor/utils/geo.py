from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:
    from velibadvisor.schemas.core import Coordinate


EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push `a` a hair above 1 for antipodal points.
    a = min(max(a, 0.0), 1.0)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def great_circle_distance(a: "Coordinate", b: "Coordinate") -> float:
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"


def format_duration(seconds: float) -> str:
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes}min"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h{remaining if remaining > 0 else ''}"


def _decode_value(encoded: str, index: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Truncated polyline")
        b = ord(encoded[index]) - 63
        index += 1
        if b < 0 or b > 63:
            raise ValueError(f"Invalid polyline character at {index - 1}")
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode_polyline(encoded: str, *, precision: int = 5, dimensions: int = 2) -> list["Coordinate"]:
    """
    Decode a Google encoded polyline into coordinates.

    `dimensions=3` reads OpenRouteService elevation polylines (lat, lng, elevation);
    the elevation value is consumed and dropped.

    Malformed input decodes to an empty list.
    """

    from velibadvisor.schemas.core import Coordinate

    if not encoded or not isinstance(encoded, str):
        return []
    if dimensions not in (2, 3):
        raise ValueError("dimensions must be 2 or 3")

    factor = 10**precision
    points: list[Coordinate] = []
    index = 0
    lat = 0
    lng = 0
    try:
        while index < len(encoded):
            d_lat, index = _decode_value(encoded, index)
            d_lng, index = _decode_value(encoded, index)
            if dimensions == 3:
                _, index = _decode_value(encoded, index)
            lat += d_lat
            lng += d_lng
            points.append(Coordinate(lat=lat / factor, lng=lng / factor))
    except ValueError:
        return []
    return points


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable["Coordinate"] | Sequence[tuple[float, float]], *, precision: int = 5) -> str:
    factor = 10**precision
    out: list[str] = []
    prev_lat = 0
    prev_lng = 0
    for point in points:
        if isinstance(point, tuple):
            lat_f, lng_f = point
        else:
            lat_f, lng_f = point.lat, point.lng
        lat = int(round(lat_f * factor))
        lng = int(round(lng_f * factor))
        out.append(_encode_value(lat - prev_lat))
        out.append(_encode_value(lng - prev_lng))
        prev_lat, prev_lng = lat, lng
    return "".join(out)
