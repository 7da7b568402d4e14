"""
HTTP surface: authentication, role checks, error mapping and the checkout
round trip through the JSON API.
"""

from tailorpos.models import Customer, InventoryItem, Sale


class TestAuth:
    def test_health_is_public(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json['checks']['database']['status'] == 'healthy'

    def test_missing_token(self, client, db_session):
        assert client.get('/api/inventory').status_code == 401

    def test_bad_token(self, client, db_session):
        response = client.get('/api/inventory', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401

    def test_login_errors(self, client, cashier_user):
        assert client.post('/api/auth/login', json={'username': 'cashier'}).status_code == 400
        response = client.post('/api/auth/login', json={'username': 'cashier', 'password': 'Wrong123!'})
        assert response.status_code == 401

    def test_me_and_logout(self, client, cashier_headers):
        me = client.get('/api/auth/me', headers=cashier_headers)
        assert me.status_code == 200
        assert me.json['user']['username'] == 'cashier'

        assert client.post('/api/auth/logout', headers=cashier_headers).status_code == 200
        assert client.get('/api/auth/me', headers=cashier_headers).status_code == 401

    def test_role_is_enforced(self, client, cashier_headers, shirt):
        response = client.patch(f'/api/inventory/{shirt.id}', json={'quantity': 1}, headers=cashier_headers)
        assert response.status_code == 403
        assert client.get('/api/reports/summary?period=today', headers=cashier_headers).status_code == 403
        assert client.get('/api/users', headers=cashier_headers).status_code == 403

    def test_deactivated_user_loses_session(self, client, admin_headers, user_factory, login):
        tailor = user_factory('tailor', 'tailor')
        headers = login('tailor')
        assert client.get('/api/auth/me', headers=headers).status_code == 200

        assert client.delete(f'/api/users/{tailor.id}', headers=admin_headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401


class TestInventoryApi:
    def test_create_and_page(self, client, admin_headers, branch):
        for name in ('Linen', 'Silk', 'Wool'):
            response = client.post('/api/inventory', json={
                'name': name, 'type': 'raw', 'unit': 'meter', 'quantity': 10, 'branch_id': branch.id,
            }, headers=admin_headers)
            assert response.status_code == 201
            assert response.json['item']['barcode']

        first = client.get('/api/inventory?page_size=2&sort=name&direction=asc', headers=admin_headers).json
        assert [i['name'] for i in first['items']] == ['Linen', 'Silk']
        assert first['has_more'] is True

        second = client.get(
            f"/api/inventory?page_size=2&sort=name&direction=asc&cursor={first['next_cursor']}",
            headers=admin_headers,
        ).json
        assert [i['name'] for i in second['items']] == ['Wool']
        assert second['next_cursor'] is None

    def test_payload_validation(self, client, admin_headers, db_session):
        assert client.post('/api/inventory', json={'type': 'raw'}, headers=admin_headers).status_code == 400
        response = client.post('/api/inventory', json={'name': 'Linen', 'type': 'raw', 'quantity': 1.5},
                               headers=admin_headers)
        assert response.status_code == 400
        response = client.post('/api/inventory', json={'name': 'Linen', 'type': 'raw', 'barcode': 'x'},
                               headers=admin_headers)
        assert response.status_code == 400

    def test_stale_version_returns_409(self, client, admin_headers, shirt):
        ok = client.patch(f'/api/inventory/{shirt.id}', json={'quantity': 9, 'version_id': 1}, headers=admin_headers)
        assert ok.status_code == 200
        assert ok.json['item']['version_id'] == 2

        stale = client.patch(f'/api/inventory/{shirt.id}', json={'quantity': 2, 'version_id': 1}, headers=admin_headers)
        assert stale.status_code == 409
        assert stale.json['retryable'] is True

    def test_unknown_item_and_bad_cursor(self, client, admin_headers, db_session):
        assert client.get('/api/inventory/999', headers=admin_headers).status_code == 404
        assert client.get('/api/inventory?cursor=not-a-cursor', headers=admin_headers).status_code == 400

    def test_barcode_and_transfer(self, client, admin_headers, shirt, other_branch, db_session):
        found = client.get(f'/api/inventory/barcode/{shirt.barcode}', headers=admin_headers)
        assert found.json['item']['id'] == shirt.id

        response = client.post(f'/api/inventory/{shirt.id}/transfer',
                               json={'to_branch_id': other_branch.id, 'qty': 2}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json['destination']['quantity'] == 2

        too_many = client.post(f'/api/inventory/{shirt.id}/transfer',
                               json={'to_branch_id': other_branch.id, 'qty': 10}, headers=admin_headers)
        assert too_many.status_code == 400


class TestCheckoutApi:
    def test_checkout_round_trip(self, client, cashier_headers, shirt, branch, db_session):
        payload = {
            'kind': 'goods',
            'branch_id': branch.id,
            'lines': [{'ref_id': shirt.id, 'qty': 2}],
            'customer': {'phone': '0101234567', 'name': 'Mona', 'is_new': True},
            'client_token': 'register-1-0001',
        }

        preview = client.post('/api/checkout/preview', json=payload, headers=cashier_headers)
        assert preview.status_code == 200
        assert preview.json['total_amount_cents'] == 200

        response = client.post('/api/checkout', json=payload, headers=cashier_headers)
        assert response.status_code == 201
        sale = response.json['sale']
        assert sale['total_amount_cents'] == 200
        assert sale['user'] == 'cashier'
        assert sale['item_count'] == 1

        replay = client.post('/api/checkout', json=payload, headers=cashier_headers)
        assert replay.status_code == 200
        assert replay.json['replayed'] is True
        assert replay.json['sale']['id'] == sale['id']

        db_session.expire_all()
        assert db_session.get(InventoryItem, shirt.id).quantity == 3
        assert db_session.get(Customer, '0101234567').order_count == 1
        assert db_session.query(Sale).count() == 1

        detail = client.get(f"/api/sales/{sale['id']}", headers=cashier_headers)
        assert detail.json['sale']['items'][0]['name'] == 'Shirt'

        orders = client.get('/api/customers/0101234567/orders', headers=cashier_headers)
        assert orders.json['count'] == 1

    def test_insufficient_stock_is_400_with_details(self, client, cashier_headers, shirt, db_session):
        response = client.post('/api/checkout', json={
            'branch_id': shirt.branch_id,
            'lines': [{'ref_id': shirt.id, 'qty': 6}],
        }, headers=cashier_headers)
        assert response.status_code == 400
        assert response.json['details']['items'][0]['on_hand'] == 5
        db_session.expire_all()
        assert db_session.get(InventoryItem, shirt.id).quantity == 5

    def test_branch_defaults_to_operator_branch(self, client, user_factory, login, shirt, branch, db_session):
        user_factory('downtown_cashier', 'cashier', branch_id=branch.id)
        headers = login('downtown_cashier')

        response = client.post('/api/checkout', json={
            'lines': [{'ref_id': shirt.id, 'qty': 1}],
        }, headers=headers)
        assert response.status_code == 201
        assert response.json['sale']['branch_id'] == branch.id
        assert response.json['sale']['branch_name'] == 'Downtown'

    def test_unpinned_operator_must_name_branch(self, client, cashier_headers, shirt, db_session):
        response = client.post('/api/checkout', json={
            'lines': [{'ref_id': shirt.id, 'qty': 1}],
        }, headers=cashier_headers)
        assert response.status_code == 400
        assert response.json['error'] == 'branch_id is required'
        db_session.expire_all()
        assert db_session.get(InventoryItem, shirt.id).quantity == 5
        assert db_session.query(Sale).count() == 0

    def test_malformed_cart(self, client, cashier_headers, db_session):
        response = client.post('/api/checkout', json={'lines': 'shirt'}, headers=cashier_headers)
        assert response.status_code == 400


def test_report_after_sales(client, admin_headers, shirt, db_session):
    client.post('/api/checkout', json={'branch_id': shirt.branch_id, 'lines': [{'ref_id': shirt.id, 'qty': 2}]},
                headers=admin_headers)
    report = client.get('/api/reports/summary?period=today', headers=admin_headers)
    assert report.status_code == 200
    assert report.json['total_sales_cents'] == 200
    assert report.json['net_profit_cents'] == 80
    assert report.json['profit_margin_pct'] == 40.0

    bad = client.get('/api/reports/summary?start=2026-05-02&end=2026-05-01', headers=admin_headers)
    assert bad.status_code == 400


def test_customer_import_json(client, admin_headers, db_session):
    response = client.post('/api/customers/import', json={'rows': [
        ['id', 'name', 'phone'],
        [1, 'Mona', '01060558591'],
        [2, 'Bad', '1'],
    ]}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json == {'processed': 2, 'created': 1, 'updated': 0, 'skipped': 1}

    stats = client.get('/api/customers/stats', headers=admin_headers).json
    assert stats['customer_count'] == 1
