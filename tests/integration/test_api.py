"""
HTTP-level tests for the JSON API.
"""

import pytest

from orderdesk.models import Order


class TestAuth:

    def test_login_and_me(self, client, user):
        response = client.post('/auth/login', json={'email': user.email, 'password': 'password123'})
        assert response.status_code == 200
        assert response.get_json()['data']['email'] == user.email

        response = client.get('/auth/me')
        assert response.status_code == 200
        assert response.get_json()['data']['id'] == user.id

    def test_wrong_password(self, client, user):
        response = client.post('/auth/login', json={'email': user.email, 'password': 'nope'})
        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid email or password'

    def test_logout(self, client, user):
        client.post('/auth/login', json={'email': user.email, 'password': 'password123'})
        client.post('/auth/logout')

        assert client.get('/auth/me').status_code == 401

    @pytest.mark.parametrize('method,url', [
        ('get', '/orders'),
        ('post', '/orders'),
        ('post', '/orders/1/payments'),
        ('post', '/inventory/adjust'),
        ('get', '/analytics/kpi'),
        ('post', '/order-requests/1/approve'),
    ])
    def test_staff_endpoints_require_login(self, client, method, url):
        response = getattr(client, method)(url, json={})
        assert response.status_code == 401
        assert response.get_json() == {
            'status': 'error',
            'kind': 'Unauthorized',
            'message': 'Authentication required',
        }


class TestOrdersApi:

    def test_create_order(self, authenticated_client, retailer, make_product):
        product = make_product(stock=10, price_retail='100')

        response = authenticated_client.post('/orders', json={
            'customer': retailer.id,
            'items': [{'product': product.id, 'quantity': 3}],
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['message'] == 'Order created successfully'
        assert body['data']['total_amount'] == 300.0
        assert body['data']['payment'] == {'amount_paid': 0.0, 'balance_remaining': 300.0, 'status': 'Unpaid'}
        assert body['data']['items'][0]['quantity'] == 3

    def test_insufficient_stock_error_body(self, authenticated_client, retailer, make_product):
        product = make_product(name='Blue Tarp', stock=10)

        response = authenticated_client.post('/orders', json={
            'customer_id': retailer.id,
            'items': [{'product_id': product.id, 'quantity': 20}],
        })

        assert response.status_code == 400
        body = response.get_json()
        assert body['status'] == 'error'
        assert body['kind'] == 'ValidationError'
        assert body['message'] == 'Insufficient stock for "Blue Tarp". Available: 10, Requested: 20'
        assert (body['available'], body['requested']) == (10, 20)

    def test_unknown_order_is_404(self, authenticated_client):
        response = authenticated_client.get('/orders/9999')
        assert response.status_code == 404
        assert response.get_json()['kind'] == 'NotFound'

    def test_payments_endpoint(self, authenticated_client, session, retailer, make_product):
        product = make_product(stock=10, price_retail='100')
        order = authenticated_client.post('/orders', json={
            'customer_id': retailer.id, 'items': [{'product_id': product.id, 'quantity': 3}]
        }).get_json()['data']

        response = authenticated_client.post(f"/orders/{order['id']}/payments", json={'amount_paid': 150})
        body = response.get_json()
        assert response.status_code == 200
        assert body['message'] == 'Payment of ₹150 recorded successfully'
        assert body['data']['status'] == 'Processing'

        response = authenticated_client.post(f"/orders/{order['id']}/payments", json={'amount': 200})
        body = response.get_json()
        assert body['amount_applied'] == 150.0
        assert body['excess'] == 50.0
        assert body['data']['payment']['status'] == 'Paid'
        assert body['data']['status'] == 'Completed'

    def test_cancel_then_cancel_again(self, authenticated_client, retailer, make_product):
        product = make_product(stock=10)
        order = authenticated_client.post('/orders', json={
            'customer_id': retailer.id, 'items': [{'product_id': product.id, 'quantity': 2}]
        }).get_json()['data']

        assert authenticated_client.post(f"/orders/{order['id']}/cancel").status_code == 200
        response = authenticated_client.post(f"/orders/{order['id']}/cancel")
        assert response.status_code == 409
        assert response.get_json()['current_status'] == 'Cancelled'
        assert product.stock == 10

    def test_edit_reconciles_when_asked(self, authenticated_client, retailer, make_product):
        product = make_product(stock=10)
        order = authenticated_client.post('/orders', json={
            'customer_id': retailer.id, 'items': [{'product_id': product.id, 'quantity': 2}]
        }).get_json()['data']

        response = authenticated_client.patch(f"/orders/{order['id']}", json={
            'items': [{'product_id': product.id, 'quantity': 5}],
            'reconcile_stock': 'true',
        })

        assert response.status_code == 200
        assert response.get_json()['data']['total_amount'] == 500.0
        assert product.stock == 5

    def test_list_and_export(self, authenticated_client, retailer, make_product):
        product = make_product(stock=10)
        authenticated_client.post('/orders', json={
            'customer_id': retailer.id, 'items': [{'product_id': product.id, 'quantity': 1}]
        })

        body = authenticated_client.get('/orders?limit=5').get_json()
        assert body['pagination'] == {'page': 1, 'limit': 5, 'total': 1, 'pages': 1}

        response = authenticated_client.get('/orders/export')
        assert response.mimetype == 'text/csv'
        assert 'attachment' in response.headers['Content-Disposition']
        assert response.get_data(as_text=True).startswith('Order Code,')

    def test_invalid_tier(self, authenticated_client):
        response = authenticated_client.get('/orders/tier/VIP')
        assert response.status_code == 400

    def test_non_object_body(self, authenticated_client):
        response = authenticated_client.post('/orders', json=[1, 2, 3])
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Request body must be a JSON object'


class TestOrderRequestsApi:

    def test_submit_and_approve(self, client, authenticated_client, session, wholesaler, make_product):
        product = make_product(stock=10, price_wholesale='80')

        response = client.post('/order-requests', json={
            'customer_id': wholesaler.id,
            'items': [{'product_id': product.id, 'quantity': 2}],
            'note': 'Before Friday',
        })
        assert response.status_code == 201
        request_id = response.get_json()['data']['id']

        response = authenticated_client.post(f'/order-requests/{request_id}/approve', json={'note': 'Approved'})
        assert response.status_code == 201
        order = response.get_json()['data']
        assert order['status'] == 'Processing'
        assert order['total_amount'] == 160.0

        response = authenticated_client.post(f'/order-requests/{request_id}/reject', json={})
        assert response.status_code == 409
        assert response.get_json()['message'] == 'Order request has already been approved'
        assert session.query(Order).count() == 1

    def test_list_defaults_exclude_approved(self, authenticated_client, wholesaler, make_product):
        product = make_product(stock=10)
        for _ in range(2):
            authenticated_client.post('/order-requests', json={
                'customer_id': wholesaler.id, 'items': [{'product_id': product.id, 'quantity': 1}]
            })
        body = authenticated_client.get('/order-requests').get_json()
        first = body['data'][0]['id']
        authenticated_client.post(f'/order-requests/{first}/approve', json={})

        body = authenticated_client.get('/order-requests').get_json()
        assert body['pagination']['total'] == 1

        body = authenticated_client.get('/order-requests?status=Approved&status=Pending').get_json()
        assert body['pagination']['total'] == 2


class TestInventoryAndAnalyticsApi:

    def test_adjust_stock(self, authenticated_client, make_product):
        product = make_product(stock=10)

        response = authenticated_client.post('/inventory/adjust', json={
            'product_id': product.id, 'action': 'reduce', 'quantity': 4, 'remarks': 'Damaged'
        })

        assert response.status_code == 200
        body = response.get_json()
        assert body['message'] == 'Stock updated successfully'
        assert body['data']['new_stock'] == 6

    def test_analytics_endpoints(self, authenticated_client):
        for url in ('/analytics/kpi', '/analytics/payments', '/analytics/top-customers',
                    '/analytics/most-sold-products', '/analytics/order-snapshot', '/analytics/expenses'):
            response = authenticated_client.get(url)
            assert response.status_code == 200, url
            assert response.get_json()['status'] == 'success'


class TestOperationalEndpoints:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['database'] == 'connected'

    def test_cache_health_degrades_without_redis(self, client):
        response = client.get('/health/cache')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'degraded'

    def test_metrics(self, client):
        client.get('/health')
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'orderdesk_http_requests_total' in response.data
