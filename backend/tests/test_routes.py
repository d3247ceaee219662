"""
HTTP API tests.

Covers store-context resolution, status codes and error payloads for the
product, ledger, checkout and count endpoints.
"""

import pytest
from sqlalchemy.exc import IntegrityError
from ledgerpos.models import Sale, StockMovement
from ledgerpos.services import inventory_service, sales_service

from conftest import fail_on_call, receive, store_headers


class TestStoreContext:

    def test_health_needs_no_context(self, client, db_session):
        response = client.get('/api/health')

        assert response.status_code == 200
        assert response.json['status'] == 'healthy'

    def test_missing_headers(self, client, db_session):
        response = client.get('/api/products')

        assert response.status_code == 401

    def test_non_numeric_headers(self, client, db_session, user_a, store_a):
        response = client.get('/api/products', headers={'X-User-Id': 'abc', 'X-Store-Id': str(store_a.id)})

        assert response.status_code == 401

    def test_inactive_user(self, client, db_session, user_a, store_a):
        user_a.is_active = False
        db_session.commit()

        response = client.get('/api/products', headers=store_headers(user_a, store_a))

        assert response.status_code == 401

    def test_store_of_other_tenant(self, client, db_session, user_a, store_b):
        response = client.get('/api/products', headers=store_headers(user_a, store_b))

        assert response.status_code == 403

    def test_other_store_of_same_tenant(self, client, db_session, user_a, store_a2):
        response = client.get('/api/products', headers=store_headers(user_a, store_a2))

        assert response.status_code == 200
        assert response.json['products'] == []


class TestProductRoutes:

    def test_create_and_list(self, client, db_session, user_a, store_a):
        headers = store_headers(user_a, store_a)

        created = client.post('/api/products', json={'name': 'Rice 2kg', 'sku': 'GRC-RICE-2K', 'price_cents': 4500},
                              headers=headers)
        listed = client.get('/api/products', headers=headers)

        assert created.status_code == 201
        assert listed.status_code == 200
        assert [p['sku'] for p in listed.json['products']] == ['GRC-RICE-2K']
        assert listed.json['products'][0]['on_hand'] == 0

    def test_duplicate_sku_conflict(self, client, db_session, user_a, store_a, product_a):
        response = client.post('/api/products', json={'name': 'Copy', 'sku': product_a.sku},
                               headers=store_headers(user_a, store_a))

        assert response.status_code == 409
        assert response.json['code'] == 'DUPLICATE_SKU'

    def test_lookup(self, client, db_session, user_a, store_a, product_a):
        response = client.get('/api/products/lookup', query_string={'q': product_a.barcode},
                              headers=store_headers(user_a, store_a))

        assert response.status_code == 200
        assert response.json['products'][0]['id'] == product_a.id

    def test_get_other_store_product(self, client, db_session, user_a, store_a, product_b):
        response = client.get(f'/api/products/{product_b.id}', headers=store_headers(user_a, store_a))

        assert response.status_code == 404

    def test_delete_in_use(self, client, db_session, user_a, store_a, product_a):
        receive(db_session, product_a, 2)

        response = client.delete(f'/api/products/{product_a.id}', headers=store_headers(user_a, store_a))

        assert response.status_code == 409
        assert response.json['code'] == 'PRODUCT_IN_USE'


class TestInventoryRoutes:

    def test_receive_then_on_hand(self, client, db_session, user_a, store_a, product_a):
        headers = store_headers(user_a, store_a)

        posted = client.post('/api/inventory/movements', json={
            'product_id': product_a.id, 'type': 'RECEIVE', 'quantity': 12, 'reference': 'PO-7',
        }, headers=headers)
        on_hand = client.get('/api/inventory/on-hand', query_string={'product_id': product_a.id}, headers=headers)

        assert posted.status_code == 201
        assert posted.json['on_hand'] == 12
        assert posted.json['movement']['kind'] == 'RECEIVE'
        assert on_hand.json['on_hand'] == {str(product_a.id): 12}

    def test_sale_type_rejected(self, client, db_session, user_a, store_a, product_a):
        response = client.post('/api/inventory/movements', json={
            'product_id': product_a.id, 'type': 'SALE', 'quantity': -1,
        }, headers=store_headers(user_a, store_a))

        assert response.status_code == 400
        assert response.json['code'] == 'INVALID_MOVEMENT_KIND'
        assert db_session.query(StockMovement).count() == 0

    def test_missing_product_id(self, client, db_session, user_a, store_a):
        response = client.post('/api/inventory/movements', json={'type': 'ADJUST', 'quantity': 1},
                               headers=store_headers(user_a, store_a))

        assert response.status_code == 400

    def test_low_stock(self, client, db_session, user_a, store_a, product_a, product_a2):
        receive(db_session, product_a, 2)

        response = client.get('/api/inventory/low-stock', headers=store_headers(user_a, store_a))

        assert [item['id'] for item in response.json['items']] == [product_a.id]

    def test_movements_listing(self, client, db_session, user_a, store_a, product_a):
        receive(db_session, product_a, 2)

        response = client.get('/api/inventory/movements', headers=store_headers(user_a, store_a))

        assert response.status_code == 200
        assert response.json['movements'][0]['product_name'] == product_a.name

    @pytest.mark.parametrize("limit", ["-1", "0"])
    def test_movements_limit_bounded(self, client, db_session, user_a, store_a, product_a, limit):
        for _ in range(3):
            receive(db_session, product_a, 1)

        response = client.get(f"/api/inventory/movements?limit={limit}", headers=store_headers(user_a, store_a))

        assert response.status_code == 200
        assert len(response.json["movements"]) == 1


class TestCheckoutRoutes:

    def test_checkout(self, client, db_session, user_a, store_a, product_a, product_a2):
        receive(db_session, product_a, 5)
        receive(db_session, product_a2, 5)

        response = client.post('/api/pos/checkout', json={'items': [
            {'product_id': product_a.id, 'quantity': 2},
            {'product_id': product_a2.id, 'quantity': 1},
        ]}, headers=store_headers(user_a, store_a))

        assert response.status_code == 201
        sale = response.json['sale']
        assert sale['total_cents'] == 2100
        assert [item['quantity'] for item in sale['items']] == [2, 1]

    def test_insufficient_stock_payload(self, client, db_session, user_a, store_a, product_a):
        receive(db_session, product_a, 3)

        response = client.post('/api/pos/checkout', json={'items': [
            {'product_id': product_a.id, 'quantity': 5},
        ]}, headers=store_headers(user_a, store_a))

        assert response.status_code == 409
        assert response.json['code'] == 'INSUFFICIENT_STOCK'
        assert response.json['details']['product_id'] == product_a.id
        assert response.json['details']['requested'] == 5
        assert response.json['details']['on_hand'] == 3
        assert db_session.query(Sale).count() == 0

    @pytest.mark.parametrize("body", [{}, {'items': []}, {'items': 'nope'}])
    def test_empty_cart(self, client, db_session, user_a, store_a, body):
        response = client.post('/api/pos/checkout', json=body, headers=store_headers(user_a, store_a))

        assert response.status_code == 400
        assert response.json['code'] == 'EMPTY_CART'

    def test_sales_history(self, client, db_session, user_a, store_a, product_a):
        receive(db_session, product_a, 5)
        headers = store_headers(user_a, store_a)
        created = client.post('/api/pos/checkout', json={'items': [{'product_id': product_a.id, 'quantity': 1}]},
                              headers=headers)
        sale_id = created.json['sale']['id']

        listed = client.get('/api/sales', headers=headers)
        fetched = client.get(f'/api/sales/{sale_id}', headers=headers)
        missing = client.get('/api/sales/99999', headers=headers)

        assert [s['id'] for s in listed.json['sales']] == [sale_id]
        assert fetched.json['sale']['items'][0]['product_id'] == product_a.id
        assert missing.status_code == 404

    def test_sales_limit_bounded(self, client, db_session, user_a, store_a, product_a):
        receive(db_session, product_a, 5)
        headers = store_headers(user_a, store_a)
        for _ in range(3):
            client.post("/api/pos/checkout", json={"items": [{"product_id": product_a.id, "quantity": 1}]},
                        headers=headers)

        response = client.get("/api/sales?limit=-1", headers=headers)

        assert len(response.json["sales"]) == 1

    def test_database_failure_is_503(self, client, db_session, monkeypatch, user_a, store_a, product_a, product_a2):
        receive(db_session, product_a, 5)
        receive(db_session, product_a2, 5)
        monkeypatch.setattr(sales_service, "append_movement", fail_on_call(
            inventory_service.append_movement, 2,
            IntegrityError("INSERT INTO stock_movements", {}, Exception("constraint failed")),
        ))

        response = client.post("/api/pos/checkout", json={"items": [
            {"product_id": product_a.id, "quantity": 1},
            {"product_id": product_a2.id, "quantity": 1},
        ]}, headers=store_headers(user_a, store_a))

        assert response.status_code == 503
        assert response.json["code"] == "PERSISTENCE_ERROR"
        assert db_session.query(Sale).count() == 0


class TestCountRoutes:

    def test_count_workflow(self, client, db_session, user_a, store_a, product_a, product_a2):
        receive(db_session, product_a, 8)
        receive(db_session, product_a2, 5)
        headers = store_headers(user_a, store_a)

        created = client.post('/api/inventory/count-sessions', json={'note': 'Aisle 3'}, headers=headers)
        session_id = created.json['session']['id']
        client.put(f'/api/inventory/count-sessions/{session_id}/lines',
                   json={'product_id': product_a.id, 'counted_qty': 10}, headers=headers)
        client.put(f'/api/inventory/count-sessions/{session_id}/lines',
                   json={'product_id': product_a2.id, 'counted_qty': 5}, headers=headers)
        finalized = client.post(f'/api/inventory/count-sessions/{session_id}/finalize', headers=headers)
        again = client.post(f'/api/inventory/count-sessions/{session_id}/finalize', headers=headers)
        late = client.put(f'/api/inventory/count-sessions/{session_id}/lines',
                          json={'product_id': product_a.id, 'counted_qty': 1}, headers=headers)

        assert created.status_code == 201
        assert finalized.status_code == 200
        assert finalized.json['adjustment_count'] == 1
        assert finalized.json['session']['status'] == 'FINALIZED'
        assert again.status_code == 409
        assert again.json['code'] == 'ALREADY_FINALIZED'
        assert late.status_code == 409
        assert late.json['code'] == 'SESSION_FINALIZED'

    def test_finalize_without_lines(self, client, db_session, user_a, store_a):
        headers = store_headers(user_a, store_a)
        created = client.post('/api/inventory/count-sessions', json={}, headers=headers)

        response = client.post(f"/api/inventory/count-sessions/{created.json['session']['id']}/finalize",
                               headers=headers)

        assert response.status_code == 400
        assert response.json['code'] == 'NO_COUNTED_ITEMS'

    def test_negative_count(self, client, db_session, user_a, store_a, product_a):
        headers = store_headers(user_a, store_a)
        created = client.post('/api/inventory/count-sessions', json={}, headers=headers)

        response = client.put(f"/api/inventory/count-sessions/{created.json['session']['id']}/lines",
                              json={'product_id': product_a.id, 'counted_qty': -4}, headers=headers)

        assert response.status_code == 400
        assert response.json['code'] == 'INVALID_QUANTITY'

    def test_session_of_other_tenant(self, client, db_session, user_a, user_b, store_a, store_b):
        foreign = client.post('/api/inventory/count-sessions', json={}, headers=store_headers(user_b, store_b))

        response = client.get(f"/api/inventory/count-sessions/{foreign.json['session']['id']}",
                              headers=store_headers(user_a, store_a))

        assert response.status_code == 404

    def test_detail_and_list(self, client, db_session, user_a, store_a, product_a):
        headers = store_headers(user_a, store_a)
        created = client.post('/api/inventory/count-sessions', json={}, headers=headers)
        session_id = created.json['session']['id']

        detail = client.get(f'/api/inventory/count-sessions/{session_id}', headers=headers)
        listed = client.get('/api/inventory/count-sessions', headers=headers)

        assert detail.json['items'][0]['id'] == product_a.id
        assert detail.json['items'][0]['counted_qty'] is None
        assert listed.json['sessions'][0]['line_count'] == 0


class TestReportRoutes:

    def test_sales_report(self, client, db_session, user_a, store_a, product_a):
        receive(db_session, product_a, 5)
        headers = store_headers(user_a, store_a)
        client.post('/api/pos/checkout', json={'items': [{'product_id': product_a.id, 'quantity': 2}]},
                    headers=headers)

        response = client.get('/api/reports/sales', headers=headers)

        assert response.status_code == 200
        assert response.json['days'] == 14
        assert response.json['sale_count'] == 1
        assert response.json['total_cents'] == 1200
        assert response.json['top_products'][0]['quantity'] == 2
        assert response.json['cashiers'][0]['user_id'] == user_a.id

    @pytest.mark.parametrize("path", ['daily-sales', 'top-products', 'cashiers'])
    def test_breakdowns(self, client, db_session, user_a, store_a, product_a, path):
        receive(db_session, product_a, 5)
        headers = store_headers(user_a, store_a)
        client.post('/api/pos/checkout', json={'items': [{'product_id': product_a.id, 'quantity': 1}]},
                    headers=headers)

        response = client.get(f'/api/reports/{path}?days=7', headers=headers)

        assert response.status_code == 200
        assert len(response.json['rows']) == 1

    def test_days_clamped(self, client, db_session, user_a, store_a):
        response = client.get('/api/reports/sales?days=5000', headers=store_headers(user_a, store_a))

        assert response.json['days'] == 365

    def test_invalid_days(self, client, db_session, user_a, store_a):
        response = client.get('/api/reports/sales?days=abc', headers=store_headers(user_a, store_a))

        assert response.status_code == 400
        assert response.json['details']['field'] == 'days'

    def test_requires_store_context(self, client, db_session):
        assert client.get('/api/reports/sales').status_code == 401

    def test_other_store_sales_excluded(self, client, db_session, user_a, user_b, store_a, store_b, product_b):
        receive(db_session, product_b, 5)
        client.post('/api/pos/checkout', json={'items': [{'product_id': product_b.id, 'quantity': 1}]},
                    headers=store_headers(user_b, store_b))

        response = client.get('/api/reports/sales', headers=store_headers(user_a, store_a))

        assert response.json['sale_count'] == 0
