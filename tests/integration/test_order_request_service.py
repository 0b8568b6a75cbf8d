"""
Integration tests for the order request queue.
"""

from decimal import Decimal

import pytest

from orderdesk.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from orderdesk.models import Order, OrderRequest, StockHistory
from orderdesk.services import order_request_service, stock_service


class TestSubmit:

    def test_submit_stores_pending_request(self, session, retailer, make_product):
        product = make_product(stock=10)

        order_request = order_request_service.submit(
            session, retailer.id, [{'product': product.id, 'quantity': 3}], note='Urgent please'
        )

        assert order_request.status == 'Pending'
        assert order_request.customer_note == 'Urgent please'
        assert [(i.product_id, i.quantity) for i in order_request.items] == [(product.id, 3)]
        assert product.stock == 10
        assert session.query(Order).count() == 0

    def test_submit_does_not_check_products(self, session, retailer):
        order_request = order_request_service.submit(session, retailer.id, [{'product_id': 4040, 'quantity': 1}])
        assert order_request.items[0].product_id == 4040

    def test_submit_requires_items(self, session, retailer):
        with pytest.raises(ValidationError, match='At least one item is required'):
            order_request_service.submit(session, retailer.id, [])

    def test_submit_for_unknown_customer(self, session, make_product):
        product = make_product()
        with pytest.raises(NotFoundError):
            order_request_service.submit(session, 8080, [{'product_id': product.id, 'quantity': 1}])


class TestDecide:

    @pytest.fixture
    def pending(self, session, wholesaler, make_product):
        product = make_product(name='Heavy Tarp', stock=10, price_wholesale='80')
        order_request = order_request_service.submit(
            session, wholesaler.id, [{'product_id': product.id, 'quantity': 4}],
            special_instructions='Fold, do not roll'
        )
        return order_request, product

    def test_approve_creates_processing_order(self, session, pending, user):
        order_request, product = pending

        order = order_request_service.approve(
            session, order_request.id, decider_user_id=user.id, decision_note='OK'
        )

        assert order.status == 'Processing'
        assert order.payment_status == 'Unpaid'
        assert order.amount_paid == Decimal('0')
        assert order.total_amount == Decimal('320')
        assert order.special_instructions == 'Fold, do not roll'
        assert [h.status for h in order.status_history] == ['Processing']
        assert product.stock == 6

        refreshed = order_request_service.get_request(session, order_request.id)
        assert refreshed.status == 'Approved'
        assert refreshed.order_id == order.id
        assert refreshed.decided_by_id == user.id
        assert refreshed.decided_at is not None

        entry = session.query(StockHistory).one()
        assert entry.source == 'order_request'
        assert entry.reference_id == order.id

    def test_failed_approval_stays_pending_and_can_be_retried(self, session, pending):
        order_request, product = pending
        product.stock = 2
        session.commit()

        with pytest.raises(InsufficientStockError):
            order_request_service.approve(session, order_request.id)

        assert order_request_service.get_request(session, order_request.id).status == 'Pending'
        assert product.stock == 2
        assert session.query(Order).count() == 0

        stock_service.adjust_stock(session, product.id, 'add', 3, remarks='Restocked')
        order = order_request_service.approve(session, order_request.id)

        assert order.total_amount == Decimal('320')
        assert product.stock == 1
        refreshed = order_request_service.get_request(session, order_request.id)
        assert refreshed.status == 'Approved'
        assert refreshed.order_id == order.id

    def test_approval_with_deleted_product(self, session, retailer):
        order_request = order_request_service.submit(session, retailer.id, [{'product_id': 9191, 'quantity': 1}])

        with pytest.raises(NotFoundError):
            order_request_service.approve(session, order_request.id)

        assert order_request_service.get_request(session, order_request.id).status == 'Pending'

    def test_reject(self, session, pending, user):
        order_request, product = pending

        rejected = order_request_service.reject(
            session, order_request.id, decider_user_id=user.id, decision_note='Out of season'
        )

        assert rejected.status == 'Rejected'
        assert rejected.decision_note == 'Out of season'
        assert rejected.order_id is None
        assert product.stock == 10
        assert session.query(Order).count() == 0

    def test_request_is_decided_once(self, session, pending):
        order_request, _ = pending
        order_request_service.reject(session, order_request.id, decision_note='First')

        with pytest.raises(ConflictError) as exc_info:
            order_request_service.reject(session, order_request.id, decision_note='Second')
        assert exc_info.value.message == 'Order request has already been rejected'
        assert exc_info.value.payload['current_status'] == 'Rejected'

        with pytest.raises(ConflictError):
            order_request_service.approve(session, order_request.id)

        refreshed = order_request_service.get_request(session, order_request.id)
        assert refreshed.decision_note == 'First'
        assert session.query(Order).count() == 0

    def test_approved_request_cannot_be_rejected(self, session, pending):
        order_request, _ = pending
        order_request_service.approve(session, order_request.id)

        with pytest.raises(ConflictError, match='already been approved'):
            order_request_service.reject(session, order_request.id)

    def test_unknown_request(self, session):
        with pytest.raises(NotFoundError):
            order_request_service.approve(session, 123456)


class TestListRequests:

    @pytest.fixture
    def requests(self, session, make_customer, make_product):
        product = make_product(stock=50)
        alpha = make_customer(name='Alpha Stores')
        beta = make_customer(name='Beta Mart')
        line = [{'product_id': product.id, 'quantity': 1}]
        pending = order_request_service.submit(session, alpha.id, line)
        rejected = order_request_service.submit(session, beta.id, line)
        approved = order_request_service.submit(session, alpha.id, line)
        order_request_service.reject(session, rejected.id)
        order_request_service.approve(session, approved.id)
        return pending, rejected, approved

    def test_defaults_to_pending_and_rejected(self, session, requests):
        pending, rejected, _ = requests
        found, total = order_request_service.list_requests(session)
        assert total == 2
        assert {r.id for r in found} == {pending.id, rejected.id}

    def test_filter_by_status_and_search(self, session, requests):
        _, _, approved = requests
        found, total = order_request_service.list_requests(session, statuses=['Approved'])
        assert [r.id for r in found] == [approved.id]

        found, total = order_request_service.list_requests(
            session, statuses=['Pending', 'Approved', 'Rejected'], search='beta'
        )
        assert total == 1
        assert found[0].customer.name == 'Beta Mart'

    def test_sort_oldest_first(self, session, requests):
        found, _ = order_request_service.list_requests(
            session, statuses=['Pending', 'Approved', 'Rejected'], sort='oldest'
        )
        assert [r.id for r in found] == sorted(r.id for r in requests)

    def test_invalid_status(self, session, requests):
        with pytest.raises(ValidationError):
            order_request_service.list_requests(session, statuses=['Archived'])

    def test_requests_are_kept_after_decision(self, session, requests):
        assert session.query(OrderRequest).count() == 3
