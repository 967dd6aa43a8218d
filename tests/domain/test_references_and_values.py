"""
Pure domain tests: reference formatting, movement sign rules, clock and DTO
helpers.
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from stock_ledger.domain.clock import DeterministicClock, SystemClock
from stock_ledger.domain.dtos import (
    LowStockAlert,
    MovementFilter,
    MovementPage,
    MovementSummary,
    MovementTypeTotals,
    ReconciliationMismatch,
    as_utc,
    intended_quantity,
)
from stock_ledger.domain.references import day_key, format_reference, parse_reference
from stock_ledger.domain.values import MovementType


class TestReferences:

    def test_format(self):
        when = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert format_reference("RCP", when, 1) == "RCP-20240115-0001"
        assert format_reference("DLV", when, 42) == "DLV-20240115-0042"

    def test_sequence_grows_past_four_digits(self):
        assert format_reference("RCP", date(2024, 1, 15), 12345) == "RCP-20240115-12345"

    def test_sequence_must_be_positive(self):
        with pytest.raises(ValueError):
            format_reference("RCP", date(2024, 1, 15), 0)

    def test_day_key_uses_utc_day(self):
        late_evening_new_york = datetime(2024, 1, 15, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert day_key("RCP", late_evening_new_york) == "RCP-20240116"

    def test_parse(self):
        assert parse_reference("DLV-20240301-0007") == ("DLV", date(2024, 3, 1), 7)

    @pytest.mark.parametrize("bad", ["", "RCP-2024-0001", "rcp-20240115-0001", "RCP-20240115-01"])
    def test_parse_rejects_garbage(self, bad):
        with pytest.raises(ValueError):
            parse_reference(bad)


class TestMovementSigns:

    @pytest.mark.parametrize(
        "movement_type, delta, accepted",
        [
            (MovementType.RECEIPT, 5, True),
            (MovementType.RECEIPT, -5, False),
            (MovementType.DELIVERY, -5, True),
            (MovementType.DELIVERY, 5, False),
            (MovementType.TRANSFER_IN, 1, True),
            (MovementType.TRANSFER_OUT, -1, True),
            (MovementType.TRANSFER_OUT, 1, False),
            (MovementType.ADJUSTMENT, 3, True),
            (MovementType.ADJUSTMENT, -3, True),
            (MovementType.ADJUSTMENT, 0, False),
            (MovementType.RECEIPT, 0, False),
        ],
    )
    def test_accepts(self, movement_type, delta, accepted):
        assert movement_type.accepts(delta) is accepted


class TestClock:

    def test_deterministic_clock_is_fixed(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
        assert clock.now() == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)

    def test_tick_and_advance(self):
        clock = DeterministicClock()
        start = clock.now()
        assert clock.tick() == start + timedelta(seconds=1)
        clock.advance(59)
        assert clock.now() == start + timedelta(minutes=1)

    def test_set_time_replaces_advanced_time(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2025, 6, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target

    def test_naive_times_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            DeterministicClock(datetime(2024, 1, 15, 9, 30))

    def test_system_clock_is_utc_aware(self):
        now = SystemClock().now_utc()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)


class TestDtoHelpers:

    def test_as_utc_attaches_utc_to_naive(self):
        assert as_utc(datetime(2024, 1, 15, 9, 30)) == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert as_utc(None) is None

    @pytest.mark.parametrize(
        "ordered, fulfilled, expected",
        [(10, None, 10), (10, 0, 10), (10, 7, 7), (10, 12, 12)],
    )
    def test_intended_quantity(self, ordered, fulfilled, expected):
        assert intended_quantity(ordered, fulfilled) == expected

    @pytest.mark.parametrize("limit, offset", [(0, 0), (-1, 0), (10, -1)])
    def test_movement_filter_rejects_bad_paging(self, limit, offset):
        with pytest.raises(ValueError):
            MovementFilter(limit=limit, offset=offset)

    def test_page_has_more(self):
        assert MovementPage(movements=(), total=30, limit=10, offset=10).has_more
        assert not MovementPage(movements=(), total=20, limit=10, offset=20).has_more

    def test_low_stock_deficit(self):
        alert = LowStockAlert(
            product_id=uuid4(), sku="W", name="Widget", reorder_level=10, total_quantity=3
        )
        assert alert.deficit == 7

    def test_reconciliation_difference(self):
        mismatch = ReconciliationMismatch(
            product_id=uuid4(),
            warehouse_id=uuid4(),
            location_id=uuid4(),
            level_quantity=5,
            movement_total=8,
        )
        assert mismatch.difference == -3

    def test_movement_summary_lookup_and_net(self):
        summary = MovementSummary(
            warehouse_id=uuid4(),
            start=None,
            end=None,
            totals=(
                MovementTypeTotals(MovementType.RECEIPT, 2, 15),
                MovementTypeTotals(MovementType.DELIVERY, 1, -4),
            ),
        )
        assert summary.for_type(MovementType.RECEIPT).quantity_total == 15
        assert summary.for_type(MovementType.ADJUSTMENT) == MovementTypeTotals(
            MovementType.ADJUSTMENT, 0, 0
        )
        assert summary.net_quantity == 11
