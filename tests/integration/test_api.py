"""
HTTP API tests through the Flask test client.
"""

import pytest


@pytest.fixture
def ids(widget, gadget, customer, supplier):
    """Plain ids (requests close the session, detaching fixture objects)."""
    return {'widget': widget.id, 'gadget': gadget.id, 'customer': customer.id, 'supplier': supplier.id}


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['database'] == 'connected'
        assert response.get_json()['cache'] == 'degraded'

    def test_metrics(self, client, ids):
        client.post('/sales', json={'items': [{'product_id': ids['widget'], 'qty': 1}], 'cash_received': 100})

        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'ledger_documents_committed_total' in response.data


class TestSalesApi:

    def test_create_and_delete_sale(self, client, ids):
        response = client.post('/sales', json={
            'items': [{'product_id': ids['widget'], 'qty': 2}],
            'customer_id': ids['customer'],
            'cash_received': 50,
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['sale']['total'] == '200.00'
        assert data['new_party_balance'] == '150.00'
        sale_id = data['sale']['id']

        response = client.delete(f'/sales/{sale_id}')
        assert response.status_code == 200
        assert response.get_json()['reverted'] is True

        response = client.delete(f'/sales/{sale_id}')
        assert response.status_code == 409
        assert response.get_json()['error'] == 'AlreadyRevertedError'

        stock = client.get(f"/inventory/{ids['widget']}").get_json()
        assert stock['stock'] == 10

    def test_insufficient_stock_is_409(self, client, ids):
        response = client.post('/sales', json={
            'items': [{'product_id': ids['gadget'], 'qty': 6}],
            'cash_received': 1000,
        })

        assert response.status_code == 409
        data = response.get_json()
        assert data['error'] == 'InsufficientStockError'
        assert data['product'] == 'Gadget'
        assert data['available'] == '5'

    def test_validation_error_is_400(self, client, ids):
        response = client.post('/sales', json={'items': [{'product_id': ids['widget'], 'qty': 'two'}]})

        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'

    def test_body_must_be_json(self, client):
        response = client.post('/sales', data='not json', content_type='text/plain')

        assert response.status_code == 400

    def test_missing_sale_is_404(self, client):
        assert client.get('/sales/9999').status_code == 404
        assert client.delete('/sales/9999').status_code == 404



    def test_sale_detail_reports_profit(self, client, ids):
        response = client.post('/sales', json={'items': [{'product_id': ids['widget'], 'qty': 2}], 'cash_received': 200})
        sale_id = response.get_json()['sale']['id']

        data = client.get(f'/sales/{sale_id}').get_json()

        assert data['profit'] == {'revenue': '200.00', 'cost': '120.00', 'profit': '80.00'}

    @pytest.mark.parametrize('customer_id', ['abc', 0, 1.5, True])
    def test_malformed_customer_id_is_400(self, client, ids, customer_id):
        response = client.post('/sales', json={
            'items': [{'product_id': ids['widget'], 'qty': 1}],
            'customer_id': customer_id,
            'cash_received': 100,
        })

        assert response.status_code == 400
        assert 'customer_id' in response.get_json()['message']

    def test_malformed_product_id_is_400(self, client):
        response = client.post('/sales', json={'items': [{'product_id': 'widget', 'qty': 1}]})

        assert response.status_code == 400
        assert 'product_id' in response.get_json()['message']

    def test_items_must_be_a_list(self, client):
        assert client.post('/sales', json={'items': 5}).status_code == 400
        assert client.post('/held-sales', json={'items': 5}).status_code == 400

    @pytest.mark.parametrize('flag', ['false', 'true', 0, 1])
    def test_is_return_must_be_boolean(self, client, ids, flag):
        response = client.post('/sales', json={
            'items': [{'product_id': ids['widget'], 'qty': 1}],
            'cash_received': 100,
            'is_return': flag,
        })

        assert response.status_code == 400
        assert 'is_return' in response.get_json()['message']
        assert client.get(f"/inventory/{ids['widget']}").get_json()['stock'] == 10

    def test_null_unit_price_uses_product_price(self, client, ids):
        response = client.post('/sales', json={
            'items': [{'product_id': ids['widget'], 'qty': 1, 'unit_price': None}],
            'cash_received': 100,
        })

        assert response.status_code == 201
        assert response.get_json()['sale']['total'] == '100.00'


class TestPurchasesApi:

    def test_purchase_and_supplier_ledger(self, client, ids):
        response = client.post('/purchases', json={
            'supplier_id': ids['supplier'],
            'items': [{'product_id': ids['widget'], 'qty': 3, 'unit_price': 50}],
            'payment_type': 'CREDIT',
        })

        assert response.status_code == 201
        assert response.get_json()['new_party_balance'] == '150.00'

        ledger = client.get(f"/suppliers/{ids['supplier']}/ledger").get_json()
        assert ledger['closing_balance'] == '150.00'
        assert len(ledger['entries']) == 1

    def test_supplier_payment_without_cash(self, client, ids):
        client.post('/purchases', json={
            'supplier_id': ids['supplier'],
            'items': [{'product_id': ids['widget'], 'qty': 1}],
            'payment_type': 'CREDIT',
        })

        response = client.post(f"/suppliers/{ids['supplier']}/payments", json={'amount': 60})

        assert response.status_code == 409
        assert response.get_json()['error'] == 'InsufficientCashError'



    def test_malformed_supplier_id_is_400(self, client, ids):
        response = client.post('/purchases', json={
            'supplier_id': 'x',
            'items': [{'product_id': ids['widget'], 'qty': 1}],
            'payment_type': 'CREDIT',
        })

        assert response.status_code == 400
        assert 'supplier_id' in response.get_json()['message']

    def test_is_return_string_is_rejected(self, client, ids):
        response = client.post('/purchases', json={
            'supplier_id': ids['supplier'],
            'items': [{'product_id': ids['widget'], 'qty': 1}],
            'payment_type': 'CREDIT',
            'is_return': 'false',
        })

        assert response.status_code == 400
        assert client.get(f"/inventory/{ids['widget']}").get_json()['stock'] == 10


class TestInventoryApi:

    def test_adjust_and_revert(self, client, ids):
        response = client.post('/inventory/adjust', json={'product_id': ids['gadget'], 'qty': -2})
        assert response.status_code == 201
        movement_id = response.get_json()['movement']['id']
        assert response.get_json()['new_stock'] == 3

        response = client.delete(f'/inventory/adjustments/{movement_id}')
        assert response.status_code == 200

        stock = client.get(f"/inventory/{ids['gadget']}").get_json()
        assert stock['stock'] == 5
        assert [m['qty'] for m in stock['movements']] == [5, -2, 2]

    def test_valuation(self, client, ids):
        data = client.get('/inventory/valuation').get_json()

        # 10 x 60 + 5 x 30
        assert data['total_value'] == '750.00'
        assert data['total_units'] == 15

    def test_unknown_product(self, client):
        assert client.get('/inventory/424242').status_code == 404



    def test_adjust_without_product_is_400(self, client):
        response = client.post('/inventory/adjust', json={'qty': 5})

        assert response.status_code == 400
        assert 'product_id' in response.get_json()['message']

    def test_adjust_with_malformed_product_is_400(self, client):
        assert client.post('/inventory/adjust', json={'product_id': 'abc', 'qty': 5}).status_code == 400

    def test_low_stock(self, client, ids, make_product):
        low = make_product(name='Almost Out', stock=3, min_stock_qty=3)
        low_id = low.id

        data = client.get('/inventory/low-stock').get_json()

        assert [p['product_id'] for p in data['products']] == [low_id]
        assert client.get(f'/inventory/{low_id}').get_json()['low_stock'] is True
        assert client.get(f"/inventory/{ids['widget']}").get_json()['low_stock'] is False


class TestHeldSalesApi:

    def test_hold_resume_flow(self, client, ids):
        response = client.post('/held-sales', json={
            'items': [{'product_id': ids['widget'], 'qty': 1}],
            'note': 'back in five',
        })
        assert response.status_code == 201
        held_id = response.get_json()['held_sale']['id']

        assert len(client.get('/held-sales').get_json()['held_sales']) == 1

        draft = client.post(f'/held-sales/{held_id}/resume').get_json()['draft']
        assert draft['items'][0]['product_id'] == ids['widget']
        assert client.get('/held-sales').get_json()['held_sales'] == []


class TestPartiesApi:

    def test_collection_and_statement(self, client, ids):
        client.post('/sales', json={
            'items': [{'product_id': ids['widget'], 'qty': 1}],
            'customer_id': ids['customer'],
            'payment_mode': 'CREDIT',
        })

        response = client.post(f"/customers/{ids['customer']}/collections", json={'amount': 40})
        assert response.status_code == 201
        assert response.get_json()['new_party_balance'] == '60.00'

        ledger = client.get(f"/customers/{ids['customer']}/ledger").get_json()
        assert [e['balance'] for e in ledger['entries']] == ['100.00', '60.00']

        accounts = {a['code']: a['balance'] for a in client.get('/cash-accounts').get_json()['accounts']}
        assert accounts['CASH_IN_HAND'] == '40.00'

    def test_unknown_customer_ledger(self, client):
        assert client.get('/customers/9999/ledger').status_code == 404
