"""
Tests for the stock request lifecycle: pending -> approved | rejected.

Covers:
- Creation with raw quantities and sets/items
- Approval moves stock central -> unit and stamps the resolution date
- Insufficient central stock leaves the request pending
- Terminal states reject further transitions
- Lookup and listing
"""

from uuid import uuid4

import pytest

from inventory_kernel.domain.scopes import StockScope
from inventory_kernel.exceptions import (
    AmbiguousQuantityError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    NotFoundError,
    UntrackedProductError,
)
from inventory_kernel.models.audit_event import SubjectType
from inventory_kernel.models.stock_request import StockRequestStatus

ADMIN_ID = uuid4()


class TestCreate:
    def test_sets_resolved_to_items(self, coordinator, unit, beer, test_actor_id):
        request = coordinator.create_stock_request(unit.id, beer.id, test_actor_id, sets=2, items=1)

        assert request.quantity == 25
        assert request.status == "pending"
        assert request.requested_by == test_actor_id
        assert request.resolved_at is None

    def test_raw_quantity(self, coordinator, unit, water, test_actor_id):
        request = coordinator.create_stock_request(
            unit.id, water.id, test_actor_id, quantity=6, notes="weekend"
        )

        assert request.quantity == 6
        assert request.notes == "weekend"

    def test_ambiguous_quantity(self, coordinator, unit, beer, test_actor_id):
        with pytest.raises(AmbiguousQuantityError):
            coordinator.create_stock_request(unit.id, beer.id, test_actor_id, quantity=12, sets=1)

    def test_zero_quantity(self, coordinator, unit, beer, test_actor_id):
        with pytest.raises(InvalidQuantityError):
            coordinator.create_stock_request(unit.id, beer.id, test_actor_id)

    def test_unit_produced_product(self, coordinator, unit, chapman, test_actor_id):
        with pytest.raises(UntrackedProductError):
            coordinator.create_stock_request(unit.id, chapman.id, test_actor_id, quantity=1)

    def test_unknown_unit(self, coordinator, beer, test_actor_id):
        with pytest.raises(NotFoundError):
            coordinator.create_stock_request(uuid4(), beer.id, test_actor_id, quantity=1)


class TestApprove:
    def test_moves_stock_to_unit(
        self, coordinator, deterministic_clock, unit, beer, set_central_stock, test_actor_id
    ):
        set_central_stock(beer, 60)
        request = coordinator.create_stock_request(unit.id, beer.id, test_actor_id, sets=2)

        approved = coordinator.approve_stock_request(request.id, ADMIN_ID)

        assert approved.status == "approved"
        assert approved.approved_by == ADMIN_ID
        assert approved.resolved_on == deterministic_clock.today()
        assert approved.resolved_at is not None
        assert coordinator.ledger.quantity_of(StockScope.central(), beer.id) == 36
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), beer.id) == 24

    def test_insufficient_central_stock_stays_pending(
        self, coordinator, unit, beer, set_central_stock, test_actor_id
    ):
        set_central_stock(beer, 10)
        request = coordinator.create_stock_request(unit.id, beer.id, test_actor_id, sets=1)

        with pytest.raises(InsufficientStockError):
            coordinator.approve_stock_request(request.id, ADMIN_ID)

        assert coordinator.workflow.get(request.id).status == "pending"
        assert coordinator.ledger.quantity_of(StockScope.central(), beer.id) == 10
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), beer.id) == 0

    def test_cannot_approve_twice(
        self, coordinator, unit, water, set_central_stock, test_actor_id
    ):
        set_central_stock(water, 10)
        request = coordinator.create_stock_request(unit.id, water.id, test_actor_id, quantity=4)
        coordinator.approve_stock_request(request.id, ADMIN_ID)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            coordinator.approve_stock_request(request.id, ADMIN_ID)

        assert exc_info.value.current_status == "approved"
        assert coordinator.ledger.quantity_of(StockScope.unit(unit.id), water.id) == 4

    def test_audited(
        self, coordinator, auditor, unit, water, set_central_stock, test_actor_id
    ):
        set_central_stock(water, 10)
        request = coordinator.create_stock_request(unit.id, water.id, test_actor_id, quantity=4)

        coordinator.approve_stock_request(request.id, ADMIN_ID)

        trace = auditor.get_trace(SubjectType.STOCK_REQUEST, request.id)
        assert trace.last_action == "stock_request_approved"
        assert trace.entries[-1].new_values == {"status": "approved", "quantity": 4}

    def test_unknown_request(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.approve_stock_request(uuid4(), ADMIN_ID)


class TestReject:
    def test_reject_moves_no_stock(
        self, coordinator, unit, water, set_central_stock, test_actor_id
    ):
        set_central_stock(water, 10)
        request = coordinator.create_stock_request(unit.id, water.id, test_actor_id, quantity=4)

        rejected = coordinator.reject_stock_request(request.id, ADMIN_ID, notes="over budget")

        assert rejected.status == "rejected"
        assert rejected.notes == "over budget"
        assert coordinator.ledger.quantity_of(StockScope.central(), water.id) == 10

    def test_rejected_cannot_be_approved(self, coordinator, unit, water, test_actor_id):
        request = coordinator.create_stock_request(unit.id, water.id, test_actor_id, quantity=4)
        coordinator.reject_stock_request(request.id, ADMIN_ID)

        with pytest.raises(InvalidStateTransitionError):
            coordinator.approve_stock_request(request.id, ADMIN_ID)


class TestLookup:
    def test_list_filters(self, coordinator, unit, other_unit, water, test_actor_id):
        first = coordinator.create_stock_request(unit.id, water.id, test_actor_id, quantity=1)
        coordinator.create_stock_request(other_unit.id, water.id, test_actor_id, quantity=2)
        coordinator.reject_stock_request(first.id, ADMIN_ID)

        assert {r.quantity for r in coordinator.workflow.list()} == {1, 2}
        assert [r.id for r in coordinator.workflow.list(unit_id=unit.id)] == [first.id]
        pending = coordinator.workflow.list(status=StockRequestStatus.PENDING)
        assert [r.unit_id for r in pending] == [other_unit.id]
        assert [r.id for r in coordinator.workflow.list(status="rejected")] == [first.id]

    def test_get_unknown(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.workflow.get(uuid4())
