"""Pydantic data models for route projection and the stringing inventory."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, FiniteFloat, field_validator


# ── route geometry ───────────────────────────────────────────────────
class Waypoint(BaseModel):
    """A named point on the route centreline with its chainage in metres.

    Accepts the short ``lat``/``lon``/``kp`` keys used by the route fixtures
    as well as the long field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    latitude: FiniteFloat = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: FiniteFloat = Field(validation_alias=AliasChoices("longitude", "lon"))
    chainage: FiniteFloat = Field(ge=0, validation_alias=AliasChoices("chainage", "kp"))
    name: str = ""


class CoordinatePoint(BaseModel):
    """A raw vertex read from a route file, before chainage is assigned."""

    index: int
    x: float
    y: float
    lon: float | None = None
    lat: float | None = None
    kp: float | None = None


class RouteMetadata(BaseModel):
    """Metadata about an imported route file."""

    source_type: str
    crs_epsg: int | None = None
    crs_name: str | None = None
    is_projected: bool | None = None
    num_waypoints: int
    chainage_source: Literal["attribute", "computed"]
    fields: list[str] = []


class ImportedRoute(BaseModel):
    metadata: RouteMetadata
    waypoints: list[Waypoint]


class ConfidenceBand(str, Enum):
    ON_ROUTE = "onRoute"
    NEAR_ROUTE = "nearRoute"
    OFF_ROUTE = "offRoute"


class ProjectionResult(BaseModel):
    """Where a GPS fix lands on the route. Built fresh for every query."""

    chainage_metres: float
    off_route_distance_metres: float
    segment_start: Waypoint
    segment_end: Waypoint
    nearest_latitude: float
    nearest_longitude: float
    confidence_band: ConfidenceBand
    kp_formatted: str
    warning: str | None = None

    @property
    def is_on_route(self) -> bool:
        return self.confidence_band is ConfidenceBand.ON_ROUTE


class KPCheck(BaseModel):
    """Outcome of comparing a typed KP with the KP derived from a GPS fix."""

    valid: bool
    message: str
    suggested_kp: str | None = None
    difference_metres: float | None = None


# ── stringing ────────────────────────────────────────────────────────
class JointStatus(str, Enum):
    STRUNG = "Strung"
    CONSUMED = "Consumed"
    INVENTORY = "Inventory"
    SCRAP = "Scrap"


class LocationType(str, Enum):
    DITCH = "Ditch"
    PUP_BANK = "Pup Bank"
    INVENTORY = "Inventory"
    SCRAP = "Scrap"


class PipeJoint(BaseModel):
    """A strung joint or a pup cut from one.

    ``length_metres`` is held as a ``Decimal`` so a cut splits it without
    rounding loss; floats are taken at their shortest repr (``12.19`` stays
    ``Decimal("12.19")``).
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: int
    joint_number: str = ""
    heat_number: str = ""
    station_kp: str = ""
    side_of_row: str = ""
    pipe_size: str = ""
    wall_thickness_mm: float | None = None
    coating_type: str = ""
    length_metres: Decimal = Field(Decimal("0"), ge=0)
    status: JointStatus = JointStatus.STRUNG
    parent_joint_id: int | None = None
    is_pup: bool = False
    pup_designation: Literal["A", "B"] | None = None
    condition: str = "Good"
    visual_check: bool = False
    location_type: LocationType = LocationType.DITCH
    gps_latitude: float | None = None
    gps_longitude: float | None = None

    @field_validator("length_metres", mode="before")
    @classmethod
    def _exact_length(cls, v):
        if isinstance(v, float):
            return Decimal(repr(v))
        if v is None or v == "":
            return Decimal("0")
        return v

    @field_validator("wall_thickness_mm", mode="before")
    @classmethod
    def _blank_wall(cls, v):
        return None if v == "" else v


class DesignSpecSegment(BaseModel):
    """Minimum wall thickness required over a station range (inclusive)."""

    station_start_metres: float
    station_end_metres: float
    min_wall_thickness_mm: float
    min_grade: str = ""
    reason: str = ""

    def covers(self, chainage: float) -> bool:
        return self.station_start_metres <= chainage <= self.station_end_metres


class PupConfig(BaseModel):
    """Minimum usable pup length for a band of nominal pipe diameters (inches)."""

    pipe_dia_min_inch: float
    pipe_dia_max_inch: float
    min_usable_length_m: float = Field(gt=0)


class FindingKind(str, Enum):
    DUPLICATE_JOINT_NUMBER = "duplicate_joint_number"
    WALL_THICKNESS_MISMATCH = "wall_thickness_mismatch"


class ValidationFinding(BaseModel):
    kind: FindingKind
    field: str
    message: str


class CutResult(BaseModel):
    piece_a: PipeJoint
    piece_b: PipeJoint
    scrap_warning: bool
    min_usable_length_metres: float


class StringingSummary(BaseModel):
    strung_count: int
    strung_length_metres: Decimal
    pup_bank_count: int
    scrap_count: int
    visually_checked_count: int
