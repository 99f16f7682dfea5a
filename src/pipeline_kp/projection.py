"""GPS fix -> chainage projection onto a route centreline.

The closest point on each segment is found in the unprojected lon/lat plane and
the distance to it is then measured with haversine.  That hybrid is accurate at
pipeline segment scales (tens of kilometres) but is not a true geodesic
projection for continental-length segments.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from pydantic import ValidationError

from .chainage import format_chainage, parse_chainage
from .config import settings
from .errors import InvalidInputError, InvalidRouteError
from .models import ConfidenceBand, KPCheck, ProjectionResult, Waypoint
from .segments import haversine_m, nearest_point_on_segment

logger = logging.getLogger(__name__)


class RouteProjector:
    """Projects GPS fixes onto an immutable, chainage-ordered polyline."""

    def __init__(
        self,
        waypoints: Iterable[Waypoint | dict],
        *,
        on_route_threshold_m: float | None = None,
        near_route_threshold_m: float | None = None,
    ):
        raw = tuple(waypoints) if waypoints is not None else ()
        if len(raw) < 2:
            raise InvalidRouteError("At least 2 waypoints required")

        try:
            wps = tuple(w if isinstance(w, Waypoint) else Waypoint.model_validate(w) for w in raw)
        except ValidationError as exc:
            raise InvalidRouteError(f"Malformed waypoint: {exc.errors()[0]['msg']}") from exc
        for prev, curr in zip(wps, wps[1:]):
            if curr.chainage < prev.chainage:
                raise InvalidRouteError(
                    f"Chainage decreases from {prev.chainage} ({prev.name or 'unnamed'}) "
                    f"to {curr.chainage} ({curr.name or 'unnamed'})"
                )

        self._waypoints = wps
        self.on_route_threshold_m = (
            settings.on_route_threshold_m if on_route_threshold_m is None else on_route_threshold_m
        )
        self.near_route_threshold_m = (
            settings.near_route_threshold_m if near_route_threshold_m is None else near_route_threshold_m
        )
        logger.info(
            "Route loaded: %d waypoints, KP %s to %s",
            len(wps),
            format_chainage(wps[0].chainage),
            format_chainage(wps[-1].chainage),
        )

    @property
    def waypoints(self) -> tuple[Waypoint, ...]:
        return self._waypoints

    @property
    def chainage_range(self) -> tuple[float, float]:
        return self._waypoints[0].chainage, self._waypoints[-1].chainage

    def classify(self, distance_m: float) -> ConfidenceBand:
        if distance_m <= self.on_route_threshold_m:
            return ConfidenceBand.ON_ROUTE
        if distance_m <= self.near_route_threshold_m:
            return ConfidenceBand.NEAR_ROUTE
        return ConfidenceBand.OFF_ROUTE

    def project(self, latitude: float, longitude: float) -> ProjectionResult:
        """Project a GPS fix onto the nearest route segment.

        Ties on distance go to the first segment in route order.
        """
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Coordinates must be numeric: {latitude!r}, {longitude!r}") from exc
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidInputError(f"Coordinates must be finite: {latitude!r}, {longitude!r}")

        best = None
        min_distance = math.inf
        for start, end in zip(self._waypoints, self._waypoints[1:]):
            # x = longitude, y = latitude
            x, y, t = nearest_point_on_segment(
                lon, lat, start.longitude, start.latitude, end.longitude, end.latitude
            )
            distance = haversine_m(lat, lon, y, x)
            if distance < min_distance:
                min_distance = distance
                best = (start, end, x, y, t)

        start, end, x, y, t = best
        chainage = start.chainage + t * (end.chainage - start.chainage)
        band = self.classify(min_distance)

        warning = None
        if band is ConfidenceBand.OFF_ROUTE:
            warning = (
                f"You appear to be {round(min_distance)}m off the Right-of-Way. "
                "KP sync may be inaccurate."
            )
            logger.warning("Fix %.5f, %.5f is %.0f m off route", lat, lon, min_distance)

        return ProjectionResult(
            chainage_metres=chainage,
            off_route_distance_metres=min_distance,
            segment_start=start,
            segment_end=end,
            nearest_latitude=y,
            nearest_longitude=x,
            confidence_band=band,
            kp_formatted=format_chainage(chainage),
            warning=warning,
        )


def check_kp_against_gps(
    kp_text: str,
    latitude: float,
    longitude: float,
    projector: RouteProjector,
    tolerance_m: float | None = None,
) -> KPCheck:
    """Compare a hand-entered KP with the KP the GPS fix projects to."""
    tolerance = settings.kp_tolerance_m if tolerance_m is None else tolerance_m

    entered = parse_chainage(kp_text)
    if entered is None:
        return KPCheck(valid=False, message="Invalid KP format")

    result = projector.project(latitude, longitude)
    difference = abs(result.chainage_metres - entered)

    if difference > tolerance:
        return KPCheck(
            valid=False,
            message=(
                f"KP mismatch: You entered {kp_text} but GPS suggests {result.kp_formatted} "
                f"({round(difference / 1000)}km difference)"
            ),
            suggested_kp=result.kp_formatted,
            difference_metres=difference,
        )

    return KPCheck(valid=True, message="KP matches GPS location", difference_metres=difference)
