"""Reference route centrelines used for KP sync.

Chainage is in metres from the Edmonton hub (KP 0+000) on both routes.
"""

from __future__ import annotations

from .errors import UnknownRouteError
from .models import Waypoint

# Edmonton -> Calgary -> Squamish (demo/training corridor)
MAIN_ROUTE = [
    Waypoint(lat=53.5461, lon=-113.4938, kp=0, name="Edmonton Hub"),
    Waypoint(lat=53.2000, lon=-113.6500, kp=42000, name="Leduc Area"),
    Waypoint(lat=52.9700, lon=-113.3700, kp=75000, name="Wetaskiwin"),
    Waypoint(lat=52.2681, lon=-113.8112, kp=145000, name="Red Deer"),
    Waypoint(lat=51.2917, lon=-114.0144, kp=255000, name="Airdrie"),
    Waypoint(lat=51.0447, lon=-114.0719, kp=300000, name="Calgary Terminal"),
    Waypoint(lat=51.1784, lon=-115.5708, kp=420000, name="Banff"),
    Waypoint(lat=51.2980, lon=-116.9631, kp=530000, name="Golden"),
    Waypoint(lat=50.9981, lon=-118.1957, kp=640000, name="Revelstoke"),
    Waypoint(lat=50.6745, lon=-120.3273, kp=780000, name="Kamloops"),
    Waypoint(lat=49.3858, lon=-121.4419, kp=900000, name="Hope"),
    Waypoint(lat=49.7016, lon=-123.1558, kp=1000000, name="Squamish Terminal"),
]

# Edmonton -> Fort McMurray
NORTH_ROUTE = [
    Waypoint(lat=53.5461, lon=-113.4938, kp=0, name="Edmonton Hub"),
    Waypoint(lat=54.0500, lon=-113.2000, kp=58000, name="Athabasca"),
    Waypoint(lat=54.7700, lon=-112.2800, kp=140000, name="Lac La Biche"),
    Waypoint(lat=55.5300, lon=-111.9500, kp=230000, name="Conklin"),
    Waypoint(lat=56.2500, lon=-111.5000, kp=310000, name="Anzac"),
    Waypoint(lat=56.7267, lon=-111.3790, kp=365000, name="Fort McMurray"),
]

ROUTES: dict[str, list[Waypoint]] = {
    "main": MAIN_ROUTE,
    "north": NORTH_ROUTE,
}


def get_route(name: str) -> list[Waypoint]:
    """Return a copy of the named reference route's waypoints."""
    try:
        return list(ROUTES[name])
    except KeyError:
        raise UnknownRouteError(
            f"Unknown route {name!r}; expected one of {', '.join(sorted(ROUTES))}"
        ) from None
