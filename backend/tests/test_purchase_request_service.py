# Overview: Pytest coverage for the purchase request state machine.

from decimal import Decimal

import pytest

from bookstock.errors import InvalidQuantityError, InvalidTransitionError, NotFoundError, ValidationError
from bookstock.services import location_service, purchase_request_service as prs

from conftest import ACTOR, APPROVER


@pytest.fixture
def draft(db_session, warehouse, book):
    return prs.create_request(
        book_id=book.id, warehouse_id=warehouse.id, quantity=10,
        estimated_cost=Decimal("12.50"), actor_id=ACTOR,
    )


@pytest.fixture
def pending(draft):
    return prs.submit_request(draft.id, actor_id=ACTOR)


class TestCreate:
    def test_defaults_to_draft(self, draft):
        assert draft.status == "DRAFT"
        assert draft.requested_by == ACTOR
        assert draft.purchase_order_id is None

    def test_submit_for_approval_flag(self, db_session, warehouse, book):
        pr = prs.create_request(
            book_id=book.id, warehouse_id=warehouse.id, quantity=1, actor_id=ACTOR, submit_for_approval=True
        )
        assert pr.status == "PENDING_APPROVAL"

    def test_zero_quantity(self, db_session, warehouse, book):
        with pytest.raises(InvalidQuantityError):
            prs.create_request(book_id=book.id, warehouse_id=warehouse.id, quantity=0, actor_id=ACTOR)

    def test_store_is_not_a_warehouse(self, db_session, store, book):
        with pytest.raises(NotFoundError):
            prs.create_request(book_id=book.id, warehouse_id=store.id, quantity=1, actor_id=ACTOR)

    def test_trashed_warehouse(self, db_session, warehouse, book):
        location_service.soft_delete_location(warehouse.id)
        with pytest.raises(ValidationError):
            prs.create_request(book_id=book.id, warehouse_id=warehouse.id, quantity=1, actor_id=ACTOR)

    def test_negative_cost(self, db_session, warehouse, book):
        with pytest.raises(ValidationError):
            prs.create_request(
                book_id=book.id, warehouse_id=warehouse.id, quantity=1,
                estimated_cost=Decimal("-1"), actor_id=ACTOR,
            )


class TestUpdate:
    def test_edit_draft(self, draft):
        pr = prs.update_request(draft.id, quantity=4, review_note="fewer", actor_id=ACTOR)
        assert pr.quantity == 4
        assert pr.review_note == "fewer"
        assert pr.estimated_cost == Decimal("12.50")

    def test_clear_cost(self, draft):
        pr = prs.update_request(draft.id, clear_estimated_cost=True, actor_id=ACTOR)
        assert pr.estimated_cost is None

    def test_only_draft_editable(self, pending):
        with pytest.raises(InvalidTransitionError):
            prs.update_request(pending.id, quantity=2, actor_id=ACTOR)


class TestTransitions:
    def test_submit_pending_fails(self, pending):
        with pytest.raises(InvalidTransitionError):
            prs.submit_request(pending.id, actor_id=ACTOR)

    def test_review_draft_fails(self, draft):
        with pytest.raises(InvalidTransitionError):
            prs.review_request(draft.id, action="APPROVE", actor_id=APPROVER)

    def test_approve_defaults(self, pending):
        pr = prs.review_request(pending.id, action="APPROVE", actor_id=APPROVER)
        assert pr.status == "APPROVED"
        assert pr.approved_quantity == 10
        assert pr.approved_cost == Decimal("12.50")
        assert pr.approved_by == APPROVER
        assert pr.approved_at is not None

    def test_approve_with_overrides(self, pending):
        pr = prs.review_request(
            pending.id, action="approve", approved_quantity=8,
            approved_cost=Decimal("11.00"), review_note="fits Q4 plan", actor_id=APPROVER,
        )
        assert pr.approved_quantity == 8
        assert pr.approved_cost == Decimal("11.00")
        assert pr.review_note == "fits Q4 plan"

    def test_approve_zero_quantity(self, pending):
        with pytest.raises(InvalidQuantityError):
            prs.review_request(pending.id, action="APPROVE", approved_quantity=0, actor_id=APPROVER)
        assert prs.get_request(pending.id).status == "PENDING_APPROVAL"

    def test_reject_clears_approval_fields(self, pending):
        pr = prs.review_request(pending.id, action="REJECT", approved_quantity=3, actor_id=APPROVER)
        assert pr.status == "REJECTED"
        assert pr.approved_quantity is None
        assert pr.approved_cost is None

    def test_rejected_is_terminal(self, pending):
        prs.review_request(pending.id, action="REJECT", actor_id=APPROVER)
        with pytest.raises(InvalidTransitionError):
            prs.review_request(pending.id, action="APPROVE", actor_id=APPROVER)
        with pytest.raises(InvalidTransitionError):
            prs.complete_request(pending.id)

    def test_unknown_action(self, pending):
        with pytest.raises(ValidationError):
            prs.review_request(pending.id, action="MAYBE", actor_id=APPROVER)

    def test_complete_unlinked_approved(self, pending):
        prs.review_request(pending.id, action="APPROVE", actor_id=APPROVER)
        pr = prs.complete_request(pending.id, actor_id=APPROVER)
        assert pr.status == "COMPLETED"
        assert pr.completed_at is not None
        with pytest.raises(InvalidTransitionError):
            prs.complete_request(pending.id)

    def test_complete_requires_approved(self, draft):
        with pytest.raises(InvalidTransitionError):
            prs.complete_request(draft.id)

    def test_unknown_id(self, db_session):
        with pytest.raises(NotFoundError):
            prs.submit_request(999999, actor_id=ACTOR)


class TestListRequests:
    def test_filters(self, db_session, warehouse, book):
        a = prs.create_request(book_id=book.id, warehouse_id=warehouse.id, quantity=1, actor_id="alice")
        b = prs.create_request(
            book_id=book.id, warehouse_id=warehouse.id, quantity=2, actor_id="bob", submit_for_approval=True
        )
        assert [r.id for r in prs.list_requests()] == [b.id, a.id]
        assert [r.id for r in prs.list_requests(status="draft")] == [a.id]
        assert [r.id for r in prs.list_requests(requested_by="bob")] == [b.id]
        assert prs.list_requests(warehouse_id=warehouse.id + 1000) == []

    def test_bad_status(self, db_session):
        with pytest.raises(ValidationError):
            prs.list_requests(status="OPEN")
