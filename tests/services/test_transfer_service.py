"""
TransferService tests.

Tests cover:
- Successful transfer: two movements, equal magnitude, opposite sign
- Default and caller-supplied notes
- Rejections leave both levels and the movement ledger unchanged
"""

from uuid import uuid4

import pytest

from stock_ledger.domain.dtos import MovementFilter
from stock_ledger.domain.values import MovementType
from stock_ledger.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    LocationInactiveError,
    LocationNotFoundError,
    SameLocationTransferError,
    WarehouseMismatchError,
)
from stock_ledger.models.reference import Location


@pytest.fixture
def stocked(ledger, stock_setup, test_actor_id):
    """Shelf A holds 6 widgets, shelf B none."""
    s = stock_setup
    ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 6, test_actor_id)
    return s


def _quantity(ledger, s, location_id) -> int:
    level = ledger.get_stock_level(s.product_id, s.warehouse_id, location_id)
    return level.quantity if level is not None else 0


class TestTransfer:

    def test_transfer_moves_stock_between_shelves(self, ledger, stocked, test_actor_id):
        s = stocked
        result = ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, 3, test_actor_id)

        assert result.outbound.stock_level.quantity == 3
        assert result.inbound.stock_level.quantity == 3
        assert result.quantity == 3
        assert _quantity(ledger, s, s.shelf_a_id) == 3
        assert _quantity(ledger, s, s.shelf_b_id) == 3

    def test_transfer_writes_one_leg_each_way(self, ledger, stocked, test_actor_id):
        s = stocked
        result = ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, 3, test_actor_id)

        out, inn = result.outbound.movement, result.inbound.movement
        assert out.movement_type == MovementType.TRANSFER_OUT
        assert inn.movement_type == MovementType.TRANSFER_IN
        assert out.quantity_delta == -3
        assert inn.quantity_delta == 3
        assert out.location_id == s.shelf_a_id
        assert inn.location_id == s.shelf_b_id

        page = ledger.query_movements(MovementFilter(warehouse_id=s.warehouse_id))
        transfer_types = [
            m.movement_type for m in page.movements
            if m.movement_type in (MovementType.TRANSFER_IN, MovementType.TRANSFER_OUT)
        ]
        assert sorted(t.value for t in transfer_types) == ["TRANSFER_IN", "TRANSFER_OUT"]

    def test_default_notes_name_the_other_location(self, ledger, stocked, test_actor_id):
        s = stocked
        result = ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, 1, test_actor_id)

        assert result.outbound.movement.notes == "Transfer to Shelf B"
        assert result.inbound.movement.notes == "Transfer from Shelf A"
        assert result.from_location.name == "Shelf A"
        assert result.to_location.code == "B-01"

    def test_caller_notes_and_reference_used_on_both_legs(self, ledger, stocked, test_actor_id):
        s = stocked
        result = ledger.transfer(
            s.product_id, s.shelf_a_id, s.shelf_b_id, 1, test_actor_id,
            reference="MOVE-9", notes="Re-slotting",
        )

        for leg in (result.outbound.movement, result.inbound.movement):
            assert leg.notes == "Re-slotting"
            assert leg.reference == "MOVE-9"

    def test_transfer_is_logged(self, ledger, stocked, test_actor_id, captured_logs):
        s = stocked
        ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, 2, test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "transfer_completed"]
        assert len(records) == 1
        assert records[0]["quantity"] == 2


class TestTransferRejections:

    def _assert_untouched(self, ledger, s):
        assert _quantity(ledger, s, s.shelf_a_id) == 6
        assert _quantity(ledger, s, s.shelf_b_id) == 0
        page = ledger.query_movements(MovementFilter(warehouse_id=s.warehouse_id))
        assert page.total == 1

    def test_insufficient_stock_rolls_back_both_legs(self, ledger, stocked, test_actor_id):
        s = stocked
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, 10, test_actor_id)

        assert exc_info.value.current_quantity == 6
        assert exc_info.value.requested_quantity == 10
        self._assert_untouched(ledger, s)

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity(self, ledger, stocked, test_actor_id, quantity):
        s = stocked
        with pytest.raises(InvalidQuantityError):
            ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, quantity, test_actor_id)
        self._assert_untouched(ledger, s)

    def test_same_location(self, ledger, stocked, test_actor_id):
        s = stocked
        with pytest.raises(SameLocationTransferError) as exc_info:
            ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_a_id, 1, test_actor_id)
        assert exc_info.value.location_id == str(s.shelf_a_id)
        self._assert_untouched(ledger, s)

    def test_unknown_destination(self, ledger, stocked, test_actor_id):
        s = stocked
        with pytest.raises(LocationNotFoundError):
            ledger.transfer(s.product_id, s.shelf_a_id, uuid4(), 1, test_actor_id)
        self._assert_untouched(ledger, s)

    def test_inactive_destination(self, ledger, stocked, test_actor_id, uow):
        s = stocked
        with uow.transaction() as session:
            session.get(Location, s.shelf_b_id).is_active = False

        with pytest.raises(LocationInactiveError):
            ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, 1, test_actor_id)
        self._assert_untouched(ledger, s)

    def test_destination_in_other_warehouse(
        self, ledger, stocked, test_actor_id, create_warehouse, create_location
    ):
        s = stocked
        other = create_warehouse("NORTH", "North Depot")
        north_bin = create_location(other, "N-01", "North Bin")

        with pytest.raises(WarehouseMismatchError):
            ledger.transfer(s.product_id, s.shelf_a_id, north_bin.id, 1, test_actor_id)
        self._assert_untouched(ledger, s)
