"""Stringing ledger: joints strung along the ROW, their validation, and pup cuts.

A cut splits a Strung joint into two pups.  Pup A takes the parent's place
(usually in the ditch); pup B is the unplaced remainder, banked as Inventory
or written off as Scrap when shorter than the minimum usable length for the
pipe size.  The parent stays in the ledger as ``Consumed`` so the heat number
can be traced from either pup back to the original joint.

Validation findings are advisory: a duplicate joint number or an under-spec
wall thickness is reported, never refused.
"""

from __future__ import annotations

import itertools
import logging
import re
import threading
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

from .chainage import parse_chainage
from .config import settings
from .errors import (
    InvalidCutLengthError,
    InvalidCutTargetError,
    InvalidDispositionError,
    JointInUseError,
    JointNotFoundError,
    TraceabilityNotConfirmedError,
)
from .models import (
    CutResult,
    DesignSpecSegment,
    FindingKind,
    JointStatus,
    LocationType,
    PipeJoint,
    PupConfig,
    StringingSummary,
    ValidationFinding,
)

logger = logging.getLogger(__name__)

PIECE_A_DISPOSITIONS = (LocationType.DITCH, LocationType.PUP_BANK, LocationType.INVENTORY)

# Fields a caller may not set directly; they belong to the ledger and the cut workflow.
_LEDGER_FIELDS = {"id", "status", "parent_joint_id", "is_pup", "pup_designation"}

# Fields a pup inherits from its parent at the cut; they stay as recorded.
_CUT_LOCKED_FIELDS = {"joint_number", "heat_number", "pipe_size", "wall_thickness_mm", "length_metres"}

_SIZE_RE = re.compile(r"\d+(?:\.\d+)?")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidCutLengthError(f"Cut length {value!r} is not a number") from exc


class StringingInventory:
    """The joint ledger for one stringing report.

    Edits, validation and the summary hold a lock so the duplicate check and
    the cut preconditions never see another writer's half-applied change.
    """

    def __init__(
        self,
        design_specs: Iterable[DesignSpecSegment | dict] = (),
        pup_config: Iterable[PupConfig | dict] = (),
        default_min_usable_length_m: float | None = None,
    ):
        self.design_specs = [
            s if isinstance(s, DesignSpecSegment) else DesignSpecSegment.model_validate(s)
            for s in design_specs
        ]
        self.pup_config = [
            p if isinstance(p, PupConfig) else PupConfig.model_validate(p) for p in pup_config
        ]
        self.default_min_usable_length_m = (
            settings.default_min_usable_length_m
            if default_min_usable_length_m is None
            else default_min_usable_length_m
        )
        self._joints: list[PipeJoint] = []
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    # ── lookups ──────────────────────────────────────────────────────
    @property
    def joints(self) -> list[PipeJoint]:
        """All ledger entries in log order (a shallow copy of the list)."""
        return list(self._joints)

    def get(self, joint_id: int) -> PipeJoint:
        for joint in self._joints:
            if joint.id == joint_id:
                return joint
        raise JointNotFoundError(f"No joint with id {joint_id}")

    def children_of(self, joint_id: int) -> list[PipeJoint]:
        return [j for j in self._joints if j.parent_joint_id == joint_id]

    @property
    def strung_joints(self) -> list[PipeJoint]:
        return [j for j in self._joints if j.status is JointStatus.STRUNG]

    @property
    def pup_bank(self) -> list[PipeJoint]:
        return [
            j
            for j in self._joints
            if j.status is JointStatus.INVENTORY and j.location_type is LocationType.PUP_BANK
        ]

    @property
    def scrap(self) -> list[PipeJoint]:
        return [j for j in self._joints if j.status is JointStatus.SCRAP]

    def required_spec(self, station_metres: float | None) -> DesignSpecSegment | None:
        """First design segment covering the station, if any."""
        if station_metres is None:
            return None
        return next((s for s in self.design_specs if s.covers(station_metres)), None)

    def min_usable_length(self, pipe_size: str | None) -> float:
        """Minimum usable pup length for a nominal size such as ``'24"'``."""
        if not pipe_size:
            return self.default_min_usable_length_m
        match = _SIZE_RE.search(pipe_size)
        if match is None:
            return self.default_min_usable_length_m
        size = float(match.group())
        for config in self.pup_config:
            if config.pipe_dia_min_inch <= size <= config.pipe_dia_max_inch:
                return config.min_usable_length_m
        return self.default_min_usable_length_m

    # ── ledger edits ─────────────────────────────────────────────────
    def add_joint(self, **fields) -> PipeJoint:
        """Log a newly strung joint. Blank or duplicate joint numbers are allowed."""
        data = {k: v for k, v in fields.items() if k not in _LEDGER_FIELDS}
        with self._lock:
            joint = PipeJoint(id=next(self._ids), status=JointStatus.STRUNG, **data)
            self._joints.append(joint)
        logger.info("Joint %s logged (id=%d)", joint.joint_number or "<blank>", joint.id)
        return joint

    def update_joint(self, joint_id: int, **fields) -> list[ValidationFinding]:
        """Edit a joint's form fields and return its findings after the edit.

        A Consumed parent is frozen.  A pup keeps the length and the identity
        fields it was cut with; its station, condition and checks stay editable.
        """
        changes = {k: v for k, v in fields.items() if k not in _LEDGER_FIELDS}
        with self._lock:
            joint = self.get(joint_id)
            if joint.status is JointStatus.CONSUMED:
                raise JointInUseError(
                    f"Joint {joint.joint_number or joint.id} was cut into pups and cannot be edited"
                )
            if joint.is_pup:
                locked = sorted(_CUT_LOCKED_FIELDS & changes.keys())
                if locked:
                    raise JointInUseError(
                        f"Pup {joint.joint_number} keeps the {', '.join(locked)} recorded at the cut"
                    )
            # validate the edited record as a whole before it replaces the old one
            updated = PipeJoint.model_validate({**joint.model_dump(), **changes})
            self._joints[self._joints.index(joint)] = updated
            return self.validate_joint(updated)

    def remove_joint(self, joint_id: int) -> PipeJoint:
        """Delete a joint that has not been part of a cut."""
        with self._lock:
            joint = self.get(joint_id)
            if joint.status is JointStatus.CONSUMED or joint.is_pup:
                raise JointInUseError(
                    f"Joint {joint.joint_number or joint.id} is part of a cut record and cannot be removed"
                )
            self._joints.remove(joint)
        logger.info("Joint %s removed (id=%d)", joint.joint_number or "<blank>", joint.id)
        return joint

    # ── validation ───────────────────────────────────────────────────
    def validate_joint(self, joint: PipeJoint) -> list[ValidationFinding]:
        with self._lock:
            findings = self._findings(joint)
        for finding in findings:
            logger.debug("Joint id=%d: %s", joint.id, finding.message)
        return findings

    def _findings(self, joint: PipeJoint) -> list[ValidationFinding]:
        findings: list[ValidationFinding] = []

        if joint.joint_number:
            duplicate = next(
                (
                    j
                    for j in self._joints
                    if j.id != joint.id
                    and j.status is JointStatus.STRUNG
                    and j.joint_number == joint.joint_number
                ),
                None,
            )
            if duplicate is not None:
                findings.append(
                    ValidationFinding(
                        kind=FindingKind.DUPLICATE_JOINT_NUMBER,
                        field="joint_number",
                        message=(
                            f"Joint {joint.joint_number} is already listed at Station "
                            f"{duplicate.station_kp or '(unplaced)'}"
                        ),
                    )
                )

        if joint.station_kp and joint.wall_thickness_mm is not None:
            spec = self.required_spec(parse_chainage(joint.station_kp))
            if spec is not None and joint.wall_thickness_mm < spec.min_wall_thickness_mm:
                findings.append(
                    ValidationFinding(
                        kind=FindingKind.WALL_THICKNESS_MISMATCH,
                        field="wall_thickness_mm",
                        message=(
                            f"WRONG PIPE. Station {joint.station_kp} is {spec.reason or 'a design segment'}. "
                            f"Requires {spec.min_wall_thickness_mm:g}mm wall ({spec.min_grade})"
                        ),
                    )
                )

        return findings

    def validate_all(self) -> dict[int, list[ValidationFinding]]:
        """Findings for every Strung joint that has any."""
        report = {}
        with self._lock:
            for joint in self.strung_joints:
                findings = self.validate_joint(joint)
                if findings:
                    report[joint.id] = findings
        return report

    # ── cutting ──────────────────────────────────────────────────────
    def cut_joint(
        self,
        joint_id: int,
        cut_length_metres,
        piece_a_disposition: LocationType | str = LocationType.DITCH,
        *,
        traceability_confirmed: bool = False,
    ) -> CutResult:
        """Cut a Strung joint into pup A (``cut_length_metres``) and pup B (the rest).

        The caller must confirm the heat number has been stencilled onto the
        remainder before the cut is recorded.  Every precondition is checked
        before the ledger is touched.
        """
        with self._lock:
            parent = self.get(joint_id)
            if parent.is_pup:
                raise InvalidCutTargetError(
                    f"Joint {parent.joint_number} is already a pup and cannot be cut again"
                )
            if parent.status is not JointStatus.STRUNG:
                raise InvalidCutTargetError(
                    f"Joint {parent.joint_number} is {parent.status.value}; only Strung joints can be cut"
                )

            cut_length = _to_decimal(cut_length_metres)
            if not cut_length.is_finite() or not (0 < cut_length < parent.length_metres):
                raise InvalidCutLengthError(
                    f"Cut length must be between 0 and {parent.length_metres} m, got {cut_length_metres}"
                )

            try:
                disposition = LocationType(piece_a_disposition)
            except ValueError:
                disposition = None
            if disposition not in PIECE_A_DISPOSITIONS:
                raise InvalidDispositionError(
                    f"Pup A disposition must be one of "
                    f"{', '.join(d.value for d in PIECE_A_DISPOSITIONS)}, got {piece_a_disposition!r}"
                )

            if not traceability_confirmed:
                raise TraceabilityNotConfirmedError(
                    f"Confirm heat number {parent.heat_number or '(none)'} has been transferred "
                    "to the remainder before cutting"
                )

            remainder = parent.length_metres - cut_length
            min_usable = self.min_usable_length(parent.pipe_size)
            is_scrap = remainder < _to_decimal(min_usable)

            piece_a = PipeJoint(
                id=next(self._ids),
                joint_number=f"{parent.joint_number}-A",
                heat_number=parent.heat_number,
                station_kp=parent.station_kp,
                side_of_row=parent.side_of_row,
                pipe_size=parent.pipe_size,
                wall_thickness_mm=parent.wall_thickness_mm,
                coating_type=parent.coating_type,
                length_metres=cut_length,
                status=JointStatus.STRUNG,
                parent_joint_id=parent.id,
                is_pup=True,
                pup_designation="A",
                visual_check=parent.visual_check,
                location_type=disposition,
                gps_latitude=parent.gps_latitude,
                gps_longitude=parent.gps_longitude,
            )
            piece_b = PipeJoint(
                id=next(self._ids),
                joint_number=f"{parent.joint_number}-B",
                heat_number=parent.heat_number,
                station_kp="",
                pipe_size=parent.pipe_size,
                wall_thickness_mm=parent.wall_thickness_mm,
                coating_type=parent.coating_type,
                length_metres=remainder,
                status=JointStatus.SCRAP if is_scrap else JointStatus.INVENTORY,
                parent_joint_id=parent.id,
                is_pup=True,
                pup_designation="B",
                location_type=LocationType.SCRAP if is_scrap else LocationType.PUP_BANK,
            )

            parent.status = JointStatus.CONSUMED
            self._joints.extend([piece_a, piece_b])

        logger.info(
            "Joint %s cut: %s m -> %s (%s), %s m -> %s (%s)",
            parent.joint_number,
            cut_length,
            piece_a.joint_number,
            piece_a.location_type.value,
            remainder,
            piece_b.joint_number,
            piece_b.status.value,
        )
        if is_scrap:
            logger.warning(
                "Remainder %s (%s m) is below minimum usable length (%s m); marked as scrap",
                piece_b.joint_number,
                remainder,
                min_usable,
            )

        return CutResult(
            piece_a=piece_a,
            piece_b=piece_b,
            scrap_warning=is_scrap,
            min_usable_length_metres=min_usable,
        )

    # ── rollups ──────────────────────────────────────────────────────
    def summary(self) -> StringingSummary:
        with self._lock:
            strung = self.strung_joints
            return StringingSummary(
                strung_count=len(strung),
                strung_length_metres=sum((j.length_metres for j in strung), Decimal("0")),
                pup_bank_count=len(self.pup_bank),
                scrap_count=len(self.scrap),
                visually_checked_count=sum(1 for j in strung if j.visual_check),
            )
