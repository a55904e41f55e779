"""
Unit tests for the query/projection layer.

Fixture step lists stand in for what the ledger returns; no adapters
are involved.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from agritrace.core.errors import HistoryInconsistentError
from agritrace.core.models import SupplyChainStep
from agritrace.core.state_machine import ProductStatus
from agritrace.engine.projection import (
    build_history,
    check_consistency,
    check_monotonic,
    chronological,
    derive_status,
    parse_steps,
    status_events,
)

T0 = datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc)


def step(step_type: str, minutes: int, step_id: str | None = None) -> dict:
    return {
        "id": step_id,
        "stepType": step_type,
        "actor": "F1",
        "description": "",
        "timestamp": (T0 + timedelta(minutes=minutes)).isoformat(),
    }


class TestChronological:
    """Tests for timeline ordering"""

    def test_sorts_by_timestamp(self):
        steps = parse_steps([step("TRANSPORT", 30), step("HARVESTED", 10), step("PROCESSED", 20)], "P-1")

        assert [s.step_type for s in chronological(steps)] == ["HARVESTED", "PROCESSED", "TRANSPORT"]

    def test_ties_keep_ledger_order(self):
        """Test equal timestamps are broken by the order the ledger returned"""
        steps = parse_steps([
            step("INSPECTION", 5, "P-1-0"),
            step("STORAGE", 5, "P-1-1"),
            step("PACKAGING", 5, "P-1-2"),
        ], "P-1")

        assert [s.id for s in chronological(steps)] == ["P-1-0", "P-1-1", "P-1-2"]

    def test_untimed_steps_sort_first(self):
        steps = [SupplyChainStep(step_type="STORAGE", timestamp=T0), SupplyChainStep(step_type="PLANTING")]
        assert chronological(steps)[0].step_type == "PLANTING"

    @given(st.lists(st.integers(min_value=0, max_value=10_000), max_size=30))
    def test_property_result_is_monotonic(self, offsets):
        """Property test: any ledger order yields a non-decreasing timeline"""
        steps = [SupplyChainStep(step_type="STORAGE", timestamp=T0 + timedelta(seconds=o)) for o in offsets]

        timeline = chronological(steps)

        assert check_monotonic(timeline)
        assert sorted(s.timestamp for s in steps) == [s.timestamp for s in timeline]


class TestDeriveStatus:
    """Tests for status derivation from status-change events"""

    def test_no_events_is_planted(self):
        assert derive_status([], "P-1") is ProductStatus.PLANTED

    def test_last_event_wins(self):
        events = status_events(parse_steps([
            step("HARVESTED", 1), step("TRANSPORT", 2), step("PROCESSED", 3),
        ], "P-1"))

        assert [e.step_type for e in events] == ["HARVESTED", "PROCESSED"]
        assert derive_status(events, "P-1") is ProductStatus.PROCESSED

    def test_skipped_status_is_inconsistent(self):
        events = parse_steps([step("HARVESTED", 1), step("IN_TRANSIT", 2, "P-1-1")], "P-1")

        with pytest.raises(HistoryInconsistentError) as exc_info:
            derive_status(events, "P-1")

        assert exc_info.value.context["step_id"] == "P-1-1"

    def test_repeated_status_is_inconsistent(self):
        events = parse_steps([step("HARVESTED", 1), step("HARVESTED", 2)], "P-1")
        with pytest.raises(HistoryInconsistentError):
            derive_status(events, "P-1")


class TestCheckConsistency:
    """Tests for derived vs reported status"""

    def test_match(self):
        check_consistency("P-1", ProductStatus.SOLD, ProductStatus.SOLD)

    def test_unknown_reported_status_is_not_checked(self):
        check_consistency("P-1", ProductStatus.HARVESTED, None)

    def test_mismatch(self):
        with pytest.raises(HistoryInconsistentError) as exc_info:
            check_consistency("P-1", ProductStatus.HARVESTED, ProductStatus.PROCESSED)

        assert exc_info.value.kind == "HistoryInconsistent"
        assert exc_info.value.context == {
            "product_id": "P-1", "derived_status": "HARVESTED", "reported_status": "PROCESSED",
        }


class TestBuildHistory:
    """Tests for the full reconstruction"""

    def test_out_of_order_steps(self):
        """Test a ledger answer in non-causal order still gives a sorted timeline"""
        raw = [
            step("DELIVERED", 40), step("HARVESTED", 10), step("TRANSPORT", 35),
            step("IN_TRANSIT", 30), step("PROCESSED", 20),
        ]

        history = build_history("P-1", raw, "DELIVERED")

        assert history.status is ProductStatus.DELIVERED
        assert history.reported_status is ProductStatus.DELIVERED
        assert [s.step_type for s in history.timeline] == [
            "HARVESTED", "PROCESSED", "IN_TRANSIT", "TRANSPORT", "DELIVERED"
        ]
        assert len(history.status_changes) == 4

    def test_null_history(self):
        history = build_history("P-1", None, ProductStatus.PLANTED)
        assert history.timeline == []
        assert history.status is ProductStatus.PLANTED

    def test_reported_status_mismatch(self):
        with pytest.raises(HistoryInconsistentError):
            build_history("P-1", [step("HARVESTED", 1)], "PLANTED")

    def test_unknown_reported_status(self):
        with pytest.raises(HistoryInconsistentError, match="unknown status"):
            build_history("P-1", [], "ROTTEN")

    def test_malformed_entry(self):
        with pytest.raises(HistoryInconsistentError) as exc_info:
            build_history("P-1", [step("HARVESTED", 1), {"actor": "F1"}])
        assert exc_info.value.context["index"] == 1

    def test_pure(self):
        raw = [step("HARVESTED", 10), step("STORAGE", 5)]
        assert build_history("P-1", raw, "HARVESTED") == build_history("P-1", raw, "HARVESTED")
