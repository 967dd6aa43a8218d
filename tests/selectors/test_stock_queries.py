"""
Stock query tests: level listings, low-stock alerts, warehouse summary and
reconciliation.
"""

from uuid import uuid4

from sqlalchemy import delete, update

from stock_ledger.config import LedgerSettings
from stock_ledger.ledger import StockLedger
from stock_ledger.models.reference import Warehouse
from stock_ledger.models.stock import StockLevel


def _plant_level_quantity(uow, s, quantity):
    """Overwrite a level with a Core UPDATE, bypassing the ledger."""
    table = StockLevel.__table__
    with uow.transaction() as session:
        session.execute(
            update(table)
            .where(
                table.c.product_id == s.product_id,
                table.c.location_id == s.shelf_a_id,
            )
            .values(quantity=quantity)
        )


class TestQueryStockLevels:

    def test_levels_are_ordered_and_described(self, ledger, stock_setup, create_product, uow, test_actor_id):
        s = stock_setup
        warehouse = uow.run(lambda session: session.get(Warehouse, s.warehouse_id))
        anvil = create_product(warehouse, "ANVIL", "Anvil")
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_b_id, 2, test_actor_id)
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 5, test_actor_id)
        ledger.receive(anvil.id, s.warehouse_id, s.shelf_a_id, 1, test_actor_id)

        levels = ledger.query_stock_levels(s.warehouse_id)

        assert [(lvl.product_sku, lvl.location_code, lvl.quantity) for lvl in levels] == [
            ("ANVIL", "A-01", 1),
            ("WIDGET", "A-01", 5),
            ("WIDGET", "B-01", 2),
        ]
        assert levels[1].product_name == "Widget"

    def test_filters(self, ledger, stock_setup, test_actor_id):
        s = stock_setup
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 5, test_actor_id)
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_b_id, 2, test_actor_id)

        by_location = ledger.query_stock_levels(s.warehouse_id, location_id=s.shelf_b_id)
        assert [lvl.quantity for lvl in by_location] == [2]

        by_product = ledger.query_stock_levels(s.warehouse_id, product_id=s.product_id)
        assert len(by_product) == 2

    def test_zero_levels_hidden_unless_requested(self, ledger, stock_setup, test_actor_id):
        s = stock_setup
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 5, test_actor_id)
        ledger.deliver(s.product_id, s.warehouse_id, s.shelf_a_id, 5, test_actor_id)

        assert ledger.query_stock_levels(s.warehouse_id) == []
        (empty,) = ledger.query_stock_levels(s.warehouse_id, include_zero=True)
        assert empty.quantity == 0

    def test_unknown_warehouse_is_empty(self, ledger, stock_setup):
        assert ledger.query_stock_levels(uuid4()) == []


class TestLowStockAlerts:

    def test_alerts_for_products_at_or_below_reorder_level(
        self, ledger, create_warehouse, create_location, create_product, test_actor_id
    ):
        warehouse = create_warehouse("LOW", "Low Stock Depot")
        shelf = create_location(warehouse, "A-01")
        bolts = create_product(warehouse, "BOLT", "Bolt", reorder_level=5)
        nuts = create_product(warehouse, "NUT", "Nut", reorder_level=2)
        screws = create_product(warehouse, "SCREW", "Screw", reorder_level=3)
        create_product(warehouse, "WASHER", "Washer", reorder_level=0)
        create_product(warehouse, "RIVET", "Rivet", reorder_level=10, is_active=False)

        ledger.receive(bolts.id, warehouse.id, shelf.id, 3, test_actor_id)
        ledger.receive(screws.id, warehouse.id, shelf.id, 20, test_actor_id)

        alerts = ledger.low_stock_alerts(warehouse.id)

        assert [(a.sku, a.total_quantity, a.deficit) for a in alerts] == [
            ("BOLT", 3, 2),
            ("NUT", 0, 2),
        ]
        assert alerts[0].locations[0].location_code == "A-01"
        assert alerts[1].locations == ()

    def test_exactly_at_reorder_level_alerts(
        self, ledger, create_warehouse, create_location, create_product, test_actor_id
    ):
        warehouse = create_warehouse("EDGE", "Edge Depot")
        shelf = create_location(warehouse, "A-01")
        gears = create_product(warehouse, "GEAR", "Gear", reorder_level=4)
        ledger.receive(gears.id, warehouse.id, shelf.id, 4, test_actor_id)

        (alert,) = ledger.low_stock_alerts(warehouse.id)
        assert alert.deficit == 0


class TestWarehouseSummary:

    def test_summary_counts(self, ledger, stock_setup, test_actor_id, deterministic_clock):
        s = stock_setup
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 5, test_actor_id)
        deterministic_clock.tick()
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_b_id, 2, test_actor_id)

        summary = ledger.warehouse_summary(s.warehouse_id)

        assert summary.active_product_count == 1
        assert summary.active_location_count == 2
        assert summary.locations_with_stock == 2
        assert summary.total_quantity == 7
        assert [m.quantity_delta for m in summary.recent_movements] == [2, 5]

    def test_recent_movements_limited(self, uow, deterministic_clock, stock_setup, test_actor_id):
        s = stock_setup
        ledger = StockLedger(uow, deterministic_clock, LedgerSettings(recent_movement_limit=2))
        for _ in range(4):
            ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 1, test_actor_id)
            deterministic_clock.tick()

        assert len(ledger.warehouse_summary(s.warehouse_id).recent_movements) == 2


class TestReconcile:

    def test_clean_ledger_reconciles(self, ledger, stock_setup, test_actor_id):
        s = stock_setup
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 10, test_actor_id)
        ledger.transfer(s.product_id, s.shelf_a_id, s.shelf_b_id, 4, test_actor_id)
        ledger.adjust(s.product_id, s.shelf_b_id, 1, test_actor_id)
        ledger.deliver(s.product_id, s.warehouse_id, s.shelf_a_id, 6, test_actor_id)

        assert ledger.reconcile() == []
        assert ledger.reconcile(s.warehouse_id) == []

    def test_planted_drift_is_reported(self, ledger, stock_setup, test_actor_id, uow, captured_logs):
        s = stock_setup
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 10, test_actor_id)
        _plant_level_quantity(uow, s, 12)

        (mismatch,) = ledger.reconcile(s.warehouse_id)

        assert mismatch.location_id == s.shelf_a_id
        assert mismatch.level_quantity == 12
        assert mismatch.movement_total == 10
        assert mismatch.difference == 2
        assert any(r["message"] == "reconciliation_mismatch_found" for r in captured_logs())

    def test_missing_level_row_is_reported(self, ledger, stock_setup, test_actor_id, uow):
        s = stock_setup
        ledger.receive(s.product_id, s.warehouse_id, s.shelf_a_id, 3, test_actor_id)
        with uow.transaction() as session:
            session.execute(delete(StockLevel.__table__))

        (mismatch,) = ledger.reconcile()
        assert mismatch.level_quantity == 0
        assert mismatch.movement_total == 3
