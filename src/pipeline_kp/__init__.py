"""GPS-to-KP projection and pipe stringing inventory for pipeline construction reporting."""

from .chainage import chainage_length, format_chainage, parse_chainage
from .inventory import StringingInventory
from .kml_reader import read_kmz
from .models import (
    ConfidenceBand,
    CutResult,
    DesignSpecSegment,
    FindingKind,
    JointStatus,
    LocationType,
    PipeJoint,
    ProjectionResult,
    PupConfig,
    ValidationFinding,
    Waypoint,
)
from .projection import RouteProjector, check_kp_against_gps
from .reader import detect_crs, read_route_shapefile
from .routes import get_route

__all__ = [
    "ConfidenceBand",
    "CutResult",
    "DesignSpecSegment",
    "FindingKind",
    "JointStatus",
    "LocationType",
    "PipeJoint",
    "ProjectionResult",
    "PupConfig",
    "RouteProjector",
    "StringingInventory",
    "ValidationFinding",
    "Waypoint",
    "chainage_length",
    "check_kp_against_gps",
    "detect_crs",
    "format_chainage",
    "get_route",
    "parse_chainage",
    "read_kmz",
    "read_route_shapefile",
]
