"""Segment geometry: haversine distance, closest point on a segment, cumulative chainage."""

from __future__ import annotations

import math

from .models import CoordinatePoint, Waypoint

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    a = min(1.0, a)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def nearest_point_on_segment(
    px: float, py: float, ax: float, ay: float, bx: float, by: float
) -> tuple[float, float, float]:
    """Closest point to (px, py) on segment A-B in the plane.

    Returns ``(x, y, t)`` with ``t`` clamped to [0, 1].  A zero-length segment
    collapses to its start point with ``t = 0``.
    """
    dx = bx - ax
    dy = by - ay
    if dx == 0 and dy == 0:
        return ax, ay, 0.0

    t = ((px - ax) * dx + (py - ay) * dy) / (dx * dx + dy * dy)
    t = max(0.0, min(1.0, t))
    return ax + t * dx, ay + t * dy, t


def assign_chainage(points: list[CoordinatePoint], start_chainage: float = 0.0) -> list[Waypoint]:
    """Turn raw route vertices into Waypoints.

    If every point already carries a ``kp`` it is used as-is; otherwise chainage
    is the cumulative haversine length from the first vertex.  Points must have
    ``lon``/``lat`` populated.
    """
    if points and all(p.kp is not None for p in points):
        return [
            Waypoint(latitude=p.lat, longitude=p.lon, chainage=p.kp, name=f"Vertex {p.index}")
            for p in points
        ]

    waypoints: list[Waypoint] = []
    cumulative = start_chainage
    for i, p in enumerate(points):
        if i > 0:
            prev = points[i - 1]
            cumulative += haversine_m(prev.lat, prev.lon, p.lat, p.lon)
        waypoints.append(
            Waypoint(latitude=p.lat, longitude=p.lon, chainage=cumulative, name=f"Vertex {p.index}")
        )
    return waypoints
