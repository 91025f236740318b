"""
Tests for TransactionCoordinator.

Covers:
- checkout: stock decrement, totals, payment status, untracked lines
- Atomicity: a failing line rolls back every line
- Pending sales: add_sale_items, mark_sale_paid
- Inter-unit transfers and the same-unit guard
- Central replenishment with generated batch numbers
- Manual intake at a unit
- Structured started/completed/failed log events
"""

import re
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.actors import SYSTEM_ACTOR_ID
from inventory_kernel.domain.dtos import SaleLineSpec
from inventory_kernel.domain.scopes import StockScope
from inventory_kernel.exceptions import (
    AmbiguousQuantityError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    NotFoundError,
    SameScopeError,
    SameUnitError,
    UntrackedProductError,
)
from inventory_kernel.models.audit_event import AuditEvent, SubjectType
from inventory_kernel.models.sale import Sale
from inventory_kernel.services.auditor_service import AuditorService
from inventory_services.transaction_coordinator import TransactionCoordinator

INVOICE_PATTERN = re.compile(r"^INV-[A-Z0-9]{10}$")


def _sale_count(session) -> int:
    return session.execute(select(func.count()).select_from(Sale)).scalar_one()


class TestCheckout:
    def test_cash_sale_is_paid_and_decrements_stock(
        self, coordinator, unit, water, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)

        sale = coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=3)], "cash"
        )

        assert sale.is_paid
        assert sale.payment_status == "paid"
        assert sale.total_amount == Decimal("3.00")
        assert sale.total_items == 3
        assert INVOICE_PATTERN.match(sale.invoice_number)
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), water.id) == 7

    def test_sale_date_is_business_day(
        self, coordinator, deterministic_clock, unit, water, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)

        sale = coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)], "cash"
        )

        assert sale.sale_date == deterministic_clock.today()

    def test_non_instant_method_is_pending(
        self, coordinator, unit, water, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)

        sale = coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)], "transfer"
        )

        assert sale.payment_status == "pending"
        assert not sale.is_paid

    def test_instant_methods_come_from_settings(
        self, session, deterministic_clock, unit, water, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)
        coordinator = TransactionCoordinator(
            session,
            clock=deterministic_clock,
            settings=LedgerSettings(instant_payment_methods=frozenset({"cash", "pos"})),
        )

        sale = coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)], "POS"
        )

        assert sale.is_paid

    def test_multi_line_totals_and_line_order(
        self, coordinator, unit, water, beer, chapman, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)
        set_unit_stock(unit, beer, 24)
        lines = [
            SaleLineSpec(product_id=beer.id, quantity=6),
            SaleLineSpec(product_id=chapman.id, quantity=2),
            SaleLineSpec(product_id=water.id, quantity=1, unit_price=Decimal("0.80")),
        ]

        sale = coordinator.checkout(unit.id, test_actor_id, lines, "cash")

        assert [item.product_id for item in sale.items] == [beer.id, chapman.id, water.id]
        assert [item.line_number for item in sale.items] == [1, 2, 3]
        assert sale.items[0].total_price == Decimal("15.00")
        assert sale.items[1].total_price == Decimal("8.00")
        assert sale.items[2].unit_price == Decimal("0.80")
        assert sale.total_amount == Decimal("23.80")

    def test_unit_produced_line_needs_no_stock(self, coordinator, unit, chapman, test_actor_id):
        sale = coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=chapman.id, quantity=5)], "cash"
        )

        assert sale.total_amount == Decimal("20.00")

    def test_failed_line_rolls_back_whole_sale(
        self, session, coordinator, unit, water, beer, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)
        set_unit_stock(unit, beer, 2)
        lines = [
            SaleLineSpec(product_id=water.id, quantity=3),
            SaleLineSpec(product_id=beer.id, quantity=5),
        ]

        with pytest.raises(InsufficientStockError) as exc_info:
            coordinator.checkout(unit.id, test_actor_id, lines, "cash")

        assert exc_info.value.product_id == str(beer.id)
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), water.id) == 10
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), beer.id) == 2
        assert _sale_count(session) == 0

    def test_unknown_unit(self, coordinator, water, test_actor_id):
        with pytest.raises(NotFoundError):
            coordinator.checkout(
                uuid4(), test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)], "cash"
            )

    def test_unknown_product(self, coordinator, unit, test_actor_id):
        with pytest.raises(NotFoundError):
            coordinator.checkout(
                unit.id, test_actor_id, [SaleLineSpec(product_id=uuid4(), quantity=1)], "cash"
            )

    def test_empty_sale_rejected(self, coordinator, unit, test_actor_id):
        with pytest.raises(InvalidQuantityError):
            coordinator.checkout(unit.id, test_actor_id, [], "cash")

    def test_zero_quantity_line_rejected(self, coordinator, unit, water, test_actor_id):
        with pytest.raises(InvalidQuantityError):
            coordinator.checkout(
                unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=0)], "cash"
            )

    def test_logs_lifecycle(
        self, captured_logs, coordinator, unit, water, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)

        coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)], "cash"
        )

        logs = captured_logs()
        started = next(r for r in logs if r["message"] == "checkout_started")
        completed = next(r for r in logs if r["message"] == "checkout_completed")
        assert started["operation"] == "checkout"
        assert started["unit_id"] == str(unit.id)
        assert started["actor_id"] == str(test_actor_id)
        assert completed["correlation_id"] == started["correlation_id"]
        assert completed["duration_ms"] >= 0
        assert any(r["message"] == "stock_adjusted" for r in logs)

    def test_logs_failure_with_error_code(
        self, captured_logs, coordinator, unit, water, test_actor_id
    ):
        with pytest.raises(InsufficientStockError):
            coordinator.checkout(
                unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)], "cash"
            )

        failed = [r for r in captured_logs() if r["message"] == "checkout_failed"]
        assert len(failed) == 1
        assert failed[0]["error_code"] == "INSUFFICIENT_STOCK"
        assert failed[0]["level"] == "WARNING"

    def test_anonymous_sale_records_system_actor(
        self, session, coordinator, unit, water, set_unit_stock
    ):
        set_unit_stock(unit, water, 5)

        sale = coordinator.checkout(
            unit.id, None, [SaleLineSpec(product_id=water.id, quantity=1)], "cash"
        )

        assert sale.user_id is None
        row = session.get(Sale, sale.id)
        assert row.created_by_id == SYSTEM_ACTOR_ID
        actors = session.execute(
            select(AuditEvent.actor_id).where(
                AuditEvent.subject_type == SubjectType.INVENTORY
            )
        ).scalars().all()
        assert actors
        assert unit.id not in actors
        assert set(actors) == {SYSTEM_ACTOR_ID}


class TestPendingSales:
    @pytest.fixture
    def pending_sale(self, coordinator, unit, water, set_unit_stock, test_actor_id):
        set_unit_stock(unit, water, 10)
        return coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=2)], "transfer"
        )

    def test_add_items_extends_sale(self, coordinator, pending_sale, unit, water, test_actor_id):
        sale = coordinator.add_sale_items(
            pending_sale.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=3)]
        )

        assert [item.line_number for item in sale.items] == [1, 2]
        assert sale.total_amount == Decimal("5.00")
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), water.id) == 5

    def test_add_items_to_paid_sale_rejected(
        self, coordinator, unit, water, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, water, 10)
        paid = coordinator.checkout(
            unit.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)], "cash"
        )

        with pytest.raises(InvalidStateTransitionError):
            coordinator.add_sale_items(
                paid.id, test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)]
            )
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), water.id) == 9

    def test_add_items_to_unknown_sale(self, coordinator, water, test_actor_id):
        with pytest.raises(NotFoundError):
            coordinator.add_sale_items(
                uuid4(), test_actor_id, [SaleLineSpec(product_id=water.id, quantity=1)]
            )

    def test_mark_paid(self, session, deterministic_clock, coordinator, pending_sale, test_actor_id):
        sale = coordinator.mark_sale_paid(pending_sale.invoice_number, "GW-REF-991")

        assert sale.is_paid
        assert sale.transaction_reference == "GW-REF-991"
        trace = AuditorService(session, deterministic_clock).get_trace(
            SubjectType.SALE, pending_sale.id
        )
        assert trace.last_action == "sale_paid"
        # Payment callbacks carry no user; the creator is the actor.
        assert trace.entries[-1].actor_id == test_actor_id

    def test_mark_paid_twice_rejected(self, coordinator, pending_sale):
        coordinator.mark_sale_paid(pending_sale.invoice_number, "REF-1")

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            coordinator.mark_sale_paid(pending_sale.invoice_number, "REF-2")
        assert exc_info.value.current_status == "paid"

    def test_mark_paid_unknown_invoice(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.mark_sale_paid("INV-DOESNOTEXI", "REF")


class TestTransferStock:
    def test_moves_between_units(
        self, coordinator, unit, other_unit, beer, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, beer, 24)

        result = coordinator.transfer_stock(unit.id, other_unit.id, beer.id, 12, test_actor_id)

        assert result.quantity == 12
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), beer.id) == 12
        assert coordinator.ledger.quantity_of(StockScope.unit(other_unit.id), beer.id) == 12

    def test_same_unit_rejected(self, coordinator, unit, beer, test_actor_id):
        with pytest.raises(SameUnitError) as exc_info:
            coordinator.transfer_stock(unit.id, unit.id, beer.id, 1, test_actor_id)

        assert isinstance(exc_info.value, SameScopeError)
        assert exc_info.value.code == "SAME_UNIT"

    def test_insufficient_stock(
        self, coordinator, unit, other_unit, beer, set_unit_stock, test_actor_id
    ):
        set_unit_stock(unit, beer, 5)

        with pytest.raises(InsufficientStockError):
            coordinator.transfer_stock(unit.id, other_unit.id, beer.id, 6, test_actor_id)
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), beer.id) == 5


class TestReplenishCentralStock:
    def test_generates_daily_batch_numbers(self, coordinator, water, beer, test_actor_id):
        first = coordinator.replenish_central_stock(water.id, 50, test_actor_id)
        second = coordinator.replenish_central_stock(beer.id, 12, test_actor_id)

        assert first.batch_number == "BATCH-20240101-0001"
        assert second.batch_number == "BATCH-20240101-0002"
        assert first.quantity == 50

    def test_batch_sequence_restarts_each_day(
        self, coordinator, deterministic_clock, water, test_actor_id
    ):
        coordinator.replenish_central_stock(water.id, 1, test_actor_id)
        deterministic_clock.advance_days(1)

        record = coordinator.replenish_central_stock(water.id, 1, test_actor_id)

        assert record.batch_number == "BATCH-20240102-0001"
        assert record.quantity == 2

    def test_explicit_batch_number(self, coordinator, water, test_actor_id):
        record = coordinator.replenish_central_stock(
            water.id, 5, test_actor_id, batch_number="SUPPLIER-77", low_stock_threshold=3
        )

        assert record.batch_number == "SUPPLIER-77"
        assert record.low_stock_threshold == 3
        assert not record.is_low_stock

    def test_sets_and_items(self, coordinator, beer, test_actor_id):
        record = coordinator.replenish_central_stock(beer.id, None, test_actor_id, sets=2, items=5)

        assert record.quantity == 29

    def test_ambiguous_input_rejected(self, coordinator, beer, test_actor_id):
        with pytest.raises(AmbiguousQuantityError):
            coordinator.replenish_central_stock(beer.id, 12, test_actor_id, sets=1)

    def test_zero_quantity_rejected(self, coordinator, beer, test_actor_id):
        with pytest.raises(InvalidQuantityError):
            coordinator.replenish_central_stock(beer.id, 0, test_actor_id)


class TestReceiveUnitStock:
    def test_manual_intake(self, coordinator, unit, beer, test_actor_id):
        movement = coordinator.receive_unit_stock(unit.id, beer.id, test_actor_id, sets=1, items=2)

        assert movement.new_quantity == 14
        assert coordinator.ledger.quantity_of(StockScope.central(), beer.id) == 0

    def test_unit_produced_rejected(self, coordinator, unit, chapman, test_actor_id):
        with pytest.raises(UntrackedProductError):
            coordinator.receive_unit_stock(unit.id, chapman.id, test_actor_id, quantity=3)
