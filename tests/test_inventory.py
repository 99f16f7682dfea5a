"""Tests for the stringing ledger: validation findings and pup cuts."""

import threading
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pipeline_kp import FindingKind, JointStatus, LocationType, StringingInventory
from pipeline_kp.errors import (
    InvalidCutLengthError,
    InvalidCutTargetError,
    InvalidDispositionError,
    JointInUseError,
    JointNotFoundError,
    TraceabilityNotConfirmedError,
)


def _snapshot(inventory):
    return [j.model_dump() for j in inventory.joints]


class TestAddJoint:
    def test_new_joint_is_strung(self, inventory):
        joint = inventory.add_joint(joint_number="J-1", length_metres=12.2)
        assert joint.status is JointStatus.STRUNG
        assert joint.parent_joint_id is None
        assert joint.is_pup is False
        assert inventory.joints == [joint]

    def test_ids_are_unique_and_ordered(self, inventory):
        a = inventory.add_joint()
        b = inventory.add_joint()
        assert a.id != b.id
        assert [j.id for j in inventory.joints] == [a.id, b.id]

    def test_float_length_kept_exact(self, j100):
        assert j100.length_metres == Decimal("12.19")

    def test_ledger_fields_cannot_be_injected(self, inventory):
        joint = inventory.add_joint(joint_number="J-2", status="Scrap", is_pup=True, id=999)
        assert joint.status is JointStatus.STRUNG
        assert joint.is_pup is False
        assert joint.id != 999

    def test_blank_and_duplicate_numbers_are_accepted(self, inventory):
        inventory.add_joint(joint_number="")
        inventory.add_joint(joint_number="J-7")
        inventory.add_joint(joint_number="J-7")
        assert len(inventory.joints) == 3


class TestValidateJoint:
    def test_duplicate_strung_number(self, inventory, j100):
        second = inventory.add_joint(joint_number="J-100", station_kp="3+132")
        findings = inventory.validate_joint(second)
        assert [f.kind for f in findings] == [FindingKind.DUPLICATE_JOINT_NUMBER]
        assert "already listed at Station 3+120" in findings[0].message

    def test_blank_numbers_never_duplicate(self, inventory):
        inventory.add_joint(joint_number="")
        second = inventory.add_joint(joint_number="")
        assert inventory.validate_joint(second) == []

    def test_consumed_joint_does_not_count(self, inventory, j100):
        inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True)
        again = inventory.add_joint(joint_number="J-100")
        assert inventory.validate_joint(again) == []

    def test_wall_thickness_below_design(self, inventory):
        joint = inventory.add_joint(joint_number="J-5", station_kp="1+000", wall_thickness_mm=8.0)
        findings = inventory.validate_joint(joint)
        assert [f.kind for f in findings] == [FindingKind.WALL_THICKNESS_MISMATCH]
        message = findings[0].message
        assert message.startswith("WRONG PIPE. Station 1+000 is a road crossing.")
        assert "Requires 9.5mm wall (X70)" in message

    def test_segment_bounds_are_inclusive(self, inventory):
        joint = inventory.add_joint(station_kp="5+500", wall_thickness_mm=9.5)
        assert inventory.validate_joint(joint)[0].kind is FindingKind.WALL_THICKNESS_MISMATCH

    @pytest.mark.parametrize(
        "station, wall",
        [
            ("1+000", 9.5),  # meets design minimum
            ("3+000", 6.0),  # no design segment here
            ("", 6.0),  # unplaced
            ("beside the truck", 6.0),  # unparseable
            ("1+000", None),  # wall not entered
        ],
    )
    def test_no_wall_finding(self, inventory, station, wall):
        joint = inventory.add_joint(station_kp=station, wall_thickness_mm=wall)
        assert inventory.validate_joint(joint) == []

    def test_both_findings(self, inventory):
        inventory.add_joint(joint_number="J-9", station_kp="5+100", wall_thickness_mm=12.7)
        joint = inventory.add_joint(joint_number="J-9", station_kp="5+200", wall_thickness_mm=9.5)
        kinds = {f.kind for f in inventory.validate_joint(joint)}
        assert kinds == {FindingKind.DUPLICATE_JOINT_NUMBER, FindingKind.WALL_THICKNESS_MISMATCH}

    def test_validation_does_not_mutate(self, inventory, j100):
        inventory.add_joint(joint_number="J-100")
        before = _snapshot(inventory)
        inventory.validate_joint(j100)
        assert _snapshot(inventory) == before

    def test_validate_all(self, inventory, j100):
        bad = inventory.add_joint(joint_number="J-6", station_kp="0+500", wall_thickness_mm=7.9)
        assert list(inventory.validate_all()) == [bad.id]


class TestCutJoint:
    def test_cut_to_inventory(self, inventory, j100):
        result = inventory.cut_joint(j100.id, 8.0, LocationType.DITCH, traceability_confirmed=True)
        a, b = result.piece_a, result.piece_b

        assert a.length_metres == Decimal("8.0")
        assert b.length_metres == Decimal("4.19")
        assert a.length_metres + b.length_metres == j100.length_metres
        assert b.status is JointStatus.INVENTORY
        assert b.location_type is LocationType.PUP_BANK
        assert result.scrap_warning is False
        assert result.min_usable_length_metres == 1.5

    def test_cut_to_scrap(self, inventory, j100):
        result = inventory.cut_joint(j100.id, 11.0, traceability_confirmed=True)
        b = result.piece_b
        assert b.length_metres == Decimal("1.19")
        assert b.status is JointStatus.SCRAP
        assert b.location_type is LocationType.SCRAP
        assert result.scrap_warning is True
        assert inventory.scrap == [b]

    def test_parent_consumed_and_kept(self, inventory, j100):
        inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True)
        assert inventory.get(j100.id).status is JointStatus.CONSUMED
        assert len(inventory.joints) == 3
        assert inventory.joints[0].id == j100.id

    def test_pieces_trace_to_parent(self, inventory, j100):
        result = inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True)
        a, b = result.piece_a, result.piece_b

        assert a.heat_number == b.heat_number == j100.heat_number == "H-55821"
        assert (a.joint_number, b.joint_number) == ("J-100-A", "J-100-B")
        assert a.parent_joint_id == b.parent_joint_id == j100.id
        assert (a.pup_designation, b.pup_designation) == ("A", "B")
        assert a.is_pup and b.is_pup
        assert inventory.children_of(j100.id) == [a, b]

    def test_piece_a_takes_parent_place(self, inventory, j100):
        a = inventory.cut_joint(j100.id, 8.0, "Pup Bank", traceability_confirmed=True).piece_a
        assert a.status is JointStatus.STRUNG
        assert a.station_kp == "3+120"
        assert a.location_type is LocationType.PUP_BANK
        assert (a.pipe_size, a.wall_thickness_mm, a.coating_type) == ('24"', 9.5, "FBE")

    def test_remainder_is_unplaced(self, inventory, j100):
        b = inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True).piece_b
        assert b.station_kp == ""
        assert (b.pipe_size, b.wall_thickness_mm) == ('24"', 9.5)

    def test_threshold_from_pup_config(self, inventory):
        joint = inventory.add_joint(joint_number="S-1", pipe_size='8"', length_metres=12.19)
        result = inventory.cut_joint(joint.id, 11.0, traceability_confirmed=True)
        assert result.min_usable_length_metres == 1.0
        assert result.piece_b.status is JointStatus.INVENTORY

    def test_remainder_equal_to_minimum_is_usable(self, inventory):
        joint = inventory.add_joint(joint_number="J-3", pipe_size='24"', length_metres=12.0)
        result = inventory.cut_joint(joint.id, 10.5, traceability_confirmed=True)
        assert result.piece_b.length_metres == Decimal("1.5")
        assert result.piece_b.status is JointStatus.INVENTORY

    def test_default_threshold(self):
        inventory = StringingInventory(default_min_usable_length_m=3.0)
        joint = inventory.add_joint(joint_number="J-1", pipe_size='24"', length_metres=12.19)
        result = inventory.cut_joint(joint.id, 10.0, traceability_confirmed=True)
        assert result.piece_b.status is JointStatus.SCRAP

    @pytest.mark.parametrize("size, expected", [('24"', 1.5), ("NPS 10", 1.0), ('42"', 1.5), ("", 1.5), ("TBD", 1.5)])
    def test_min_usable_length(self, inventory, size, expected):
        assert inventory.min_usable_length(size) == expected

    def test_cut_length_given_as_text(self, inventory, j100):
        result = inventory.cut_joint(j100.id, "8.000", traceability_confirmed=True)
        assert result.piece_b.length_metres == Decimal("4.190")


class TestCutRejections:
    def test_unknown_joint(self, inventory):
        with pytest.raises(JointNotFoundError):
            inventory.cut_joint(404, 1.0, traceability_confirmed=True)

    @pytest.mark.parametrize("length", [0, -1.0, 12.19, 13.0, "abc", "NaN"])
    def test_bad_cut_length(self, inventory, j100, length):
        before = _snapshot(inventory)
        with pytest.raises(InvalidCutLengthError):
            inventory.cut_joint(j100.id, length, traceability_confirmed=True)
        assert _snapshot(inventory) == before

    def test_traceability_required(self, inventory, j100):
        before = _snapshot(inventory)
        with pytest.raises(TraceabilityNotConfirmedError):
            inventory.cut_joint(j100.id, 8.0)
        assert _snapshot(inventory) == before

    def test_piece_a_cannot_go_to_scrap(self, inventory, j100):
        with pytest.raises(InvalidDispositionError):
            inventory.cut_joint(j100.id, 8.0, "Scrap", traceability_confirmed=True)
        with pytest.raises(InvalidDispositionError):
            inventory.cut_joint(j100.id, 8.0, "Laydown", traceability_confirmed=True)

    def test_consumed_joint(self, inventory, j100):
        inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True)
        before = _snapshot(inventory)
        with pytest.raises(InvalidCutTargetError):
            inventory.cut_joint(j100.id, 2.0, traceability_confirmed=True)
        assert _snapshot(inventory) == before

    def test_pup_cannot_be_cut_again(self, inventory, j100):
        a = inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True).piece_a
        before = _snapshot(inventory)
        with pytest.raises(InvalidCutTargetError):
            inventory.cut_joint(a.id, 4.0, traceability_confirmed=True)
        assert _snapshot(inventory) == before


class TestLedgerEdits:
    def test_update_returns_new_findings(self, inventory, j100):
        findings = inventory.update_joint(j100.id, station_kp="1+500", wall_thickness_mm="8.0")
        assert [f.kind for f in findings] == [FindingKind.WALL_THICKNESS_MISMATCH]
        assert inventory.get(j100.id).wall_thickness_mm == 8.0

    def test_update_ignores_ledger_fields(self, inventory, j100):
        inventory.update_joint(j100.id, status="Scrap", heat_number="H-1")
        joint = inventory.get(j100.id)
        assert joint.status is JointStatus.STRUNG
        assert joint.heat_number == "H-1"

    def test_remove_plain_joint(self, inventory, j100):
        inventory.remove_joint(j100.id)
        assert inventory.joints == []
        with pytest.raises(JointNotFoundError):
            inventory.get(j100.id)

    def test_consumed_parent_cannot_be_edited(self, inventory, j100):
        result = inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True)
        with pytest.raises(JointInUseError):
            inventory.update_joint(j100.id, length_metres=20)
        parent = inventory.get(j100.id)
        assert parent.length_metres == Decimal("12.19")
        assert result.piece_a.length_metres + result.piece_b.length_metres == parent.length_metres

    @pytest.mark.parametrize(
        "field, value",
        [("heat_number", "OTHER"), ("length_metres", 5.0), ("pipe_size", '16"'), ("wall_thickness_mm", 6.0)],
    )
    def test_pup_keeps_cut_record(self, inventory, j100, field, value):
        b = inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True).piece_b
        before = _snapshot(inventory)
        with pytest.raises(JointInUseError, match=field):
            inventory.update_joint(b.id, **{field: value})
        assert _snapshot(inventory) == before
        assert inventory.get(b.id).heat_number == "H-55821"

    def test_pup_can_be_placed(self, inventory, j100):
        b = inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True).piece_b
        inventory.update_joint(b.id, station_kp="3+400", visual_check=True)
        placed = inventory.get(b.id)
        assert (placed.station_kp, placed.visual_check) == ("3+400", True)

    def test_unknown_fields_are_rejected(self, inventory, j100):
        with pytest.raises(ValidationError):
            inventory.add_joint(jointNumber="J-1")
        with pytest.raises(ValidationError):
            inventory.update_joint(j100.id, heatNumber="H-1")
        assert len(inventory.joints) == 1
        assert inventory.get(j100.id).heat_number == "H-55821"

    def test_cut_records_cannot_be_removed(self, inventory, j100):
        result = inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True)
        for joint_id in (j100.id, result.piece_a.id, result.piece_b.id):
            with pytest.raises(JointInUseError):
                inventory.remove_joint(joint_id)
        assert len(inventory.joints) == 3


class TestSummary:
    def test_rollup_after_cuts(self, inventory, j100):
        inventory.add_joint(joint_number="J-101", length_metres=12.2, visual_check=True)
        scrap_parent = inventory.add_joint(joint_number="J-102", pipe_size='24"', length_metres=12.0)
        inventory.cut_joint(j100.id, 8.0, traceability_confirmed=True)
        inventory.cut_joint(scrap_parent.id, 11.0, traceability_confirmed=True)

        summary = inventory.summary()
        # strung: J-101, J-100-A, J-102-A
        assert summary.strung_count == 3
        assert summary.strung_length_metres == Decimal("31.2")
        assert summary.pup_bank_count == 1
        assert summary.scrap_count == 1
        assert summary.visually_checked_count == 1
        assert [j.joint_number for j in inventory.pup_bank] == ["J-100-B"]

    @pytest.mark.parametrize("reader", ["summary", "validate_all"])
    def test_readers_wait_for_writer(self, inventory, j100, reader):
        results = []
        worker = threading.Thread(target=lambda: results.append(getattr(inventory, reader)()))
        with inventory._lock:
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            inventory.add_joint(joint_number="J-101", length_metres=12.2)
        worker.join(timeout=5)
        assert len(results) == 1
        if reader == "summary":
            assert results[0].strung_count == 2
