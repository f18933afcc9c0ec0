"""Tests for the REST API routers with the managers patched out."""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from api import app
from auth import get_current_user
from catalog import ProductNotFoundError, InvalidProductError
from chain import ContractError
from inventory import InventoryItemExistsError
from orders import InsufficientStockError, InvalidTransitionError
from parties import PartyExistsError

@pytest.fixture
def client():
    # No context manager: the lifespan (database startup) is not run
    return TestClient(app)

@pytest.fixture
def order_manager():
    with patch('api.orders.OrderManager') as manager_class:
        yield manager_class.return_value

@pytest.fixture
def product_manager():
    with patch('api.products.ProductManager') as manager_class:
        yield manager_class.return_value

@pytest.fixture
def party_manager():
    with patch('api.parties.PartyManager') as manager_class:
        yield manager_class.return_value

@pytest.fixture
def inventory_manager():
    with patch('api.inventory.InventoryManager') as manager_class:
        yield manager_class.return_value

def test_create_order_accepts_camel_case(client, order_manager):
    order_manager.create_order = AsyncMock(return_value={'order_id': 'ORD-001', 'total_amount': Decimal('300')})

    response = client.post('/orders', json={
        'buyerAddress': '0xbbb',
        'sellerAddress': '0xaaa',
        'items': [{'productId': 'PRD-001', 'quantity': 30}]
    })

    assert response.status_code == 201
    assert response.json()['order_id'] == 'ORD-001'
    kwargs = order_manager.create_order.await_args.kwargs
    assert kwargs['buyer_address'] == '0xbbb'
    assert kwargs['items'] == [{'product_id': 'PRD-001', 'quantity': 30}]

def test_create_order_insufficient_stock(client, order_manager):
    order_manager.create_order = AsyncMock(side_effect=InsufficientStockError('Amoxicillin 500mg', 70, 80))

    response = client.post('/orders', json={
        'buyer_address': '0xbbb',
        'seller_address': '0xaaa',
        'items': [{'product_id': 'PRD-001', 'quantity': 80}]
    })

    assert response.status_code == 400
    detail = response.json()['detail']
    assert detail['error'] == 'validation'
    assert 'Amoxicillin 500mg' in detail['message']

def test_create_order_unknown_product(client, order_manager):
    order_manager.create_order = AsyncMock(side_effect=ProductNotFoundError('PRD-404'))

    response = client.post('/orders', json={
        'buyer_address': '0xbbb',
        'seller_address': '0xaaa',
        'items': [{'product_id': 'PRD-404', 'quantity': 1}]
    })

    assert response.status_code == 404
    assert response.json()['detail']['error'] == 'not_found'

def test_malformed_order_body_is_validation_error(client, order_manager):
    order_manager.create_order = AsyncMock()

    response = client.post('/orders', json={
        'buyerAddress': '0xbbb',
        'items': [{'productId': 'PRD-001', 'quantity': 'lots'}]
    })

    assert response.status_code == 400
    detail = response.json()['detail']
    assert detail['error'] == 'validation'
    assert 'sellerAddress' in detail['message']
    assert 'quantity' in detail['message']
    order_manager.create_order.assert_not_awaited()

def test_inventory_missing_fields_is_validation_error(client, inventory_manager):
    response = client.post('/inventory', json={'walletAddress': '0xdist'})

    assert response.status_code == 400
    assert response.json()['detail']['error'] == 'validation'

def test_transfer_bridge_failure_is_bad_gateway(client, order_manager):
    order_manager.create_transfer_order = AsyncMock(
        side_effect=ContractError("reverted", -32000, "createOrder")
    )

    response = client.post('/orders/transfer', json={
        'buyerAddress': '0xbbb',
        'sellerAddress': '0xaaa',
        'itemName': 'Paracetamol 500mg',
        'quantity': 5
    })

    assert response.status_code == 502
    assert response.json()['detail']['error'] == 'upstream_failure'

def test_update_order_invalid_transition(client, order_manager):
    order_manager.update_order = AsyncMock(side_effect=InvalidTransitionError('Completed', 'Pending'))

    response = client.put('/orders/ORD-001', json={'status': 'Pending'})

    assert response.status_code == 400

def test_update_order_passes_tracking(client, order_manager):
    order_manager.update_order = AsyncMock(return_value={'order_id': 'ORD-001', 'status': 'Shipped'})

    response = client.put('/orders/ORD-001', json={'status': 'Shipped', 'trackingUpdate': 'Left warehouse'})

    assert response.status_code == 200
    order_id, fields = order_manager.update_order.await_args.args
    assert order_id == 'ORD-001'
    assert fields['status'] == 'Shipped'
    assert fields['tracking_update'] == 'Left warehouse'

def test_search_orders_paginates(client, order_manager):
    order_manager.search_orders = AsyncMock(return_value=[])

    response = client.get('/orders', params={'buyer': '0xbbb', 'page': 3, 'per_page': 10})

    assert response.status_code == 200
    kwargs = order_manager.search_orders.await_args.kwargs
    assert kwargs['limit'] == 10
    assert kwargs['offset'] == 20

def test_link_chain(client, order_manager):
    order_manager.link_chain = AsyncMock(return_value={'order_id': 'ORD-001', 'transaction_hash': '0xfeed'})

    response = client.patch('/orders/ORD-001', json={'transactionHash': '0xfeed'})

    assert response.status_code == 200
    assert order_manager.link_chain.await_args.kwargs['transaction_hash'] == '0xfeed'

def test_get_missing_product(client, product_manager):
    product_manager.get_product = AsyncMock(side_effect=ProductNotFoundError('PRD-404'))

    response = client.get('/products/PRD-404')

    assert response.status_code == 404

def test_create_product(client, product_manager):
    product_manager.create_product = AsyncMock(return_value={'product_id': 'PRD-001', 'status': 'Available'})

    response = client.post('/products', json={
        'name': 'Amoxicillin 500mg',
        'category': 'Antibiotics',
        'price': '10.00',
        'unit': 'box',
        'quantity': 100,
        'expiryDate': '2027-01-31'
    })

    assert response.status_code == 201
    kwargs = product_manager.create_product.await_args.kwargs
    assert kwargs['quantity'] == 100
    assert str(kwargs['expiry_date']) == '2027-01-31'

def test_list_products_bad_status(client, product_manager):
    product_manager.list_products = AsyncMock(side_effect=InvalidProductError("Unknown product status: X"))

    response = client.get('/products', params={'status': 'X'})

    assert response.status_code == 400

def test_register_duplicate_party(client, party_manager):
    party_manager.register_party = AsyncMock(side_effect=PartyExistsError('0xabc'))

    response = client.post('/users', json={
        'walletAddress': '0xABC',
        'role': 'manufacturer',
        'name': 'Dana Reyes',
        'companyName': 'Acme Pharma',
        'email': 'dana@acme.example'
    })

    assert response.status_code == 409
    assert response.json()['detail']['error'] == 'conflict'

def test_update_other_party_forbidden(client, party_manager):
    app.dependency_overrides[get_current_user] = lambda: '0xaaa'
    try:
        response = client.put('/users/0xbbb', json={'name': 'Hijacked'})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 403
    party_manager.update_party.assert_not_called()

def test_update_own_party(client, party_manager):
    party_manager.update_party = AsyncMock(return_value={'wallet_address': '0xaaa', 'location': 'Lyon'})
    app.dependency_overrides[get_current_user] = lambda: '0xaaa'
    try:
        response = client.put('/users/0xAAA', json={'location': 'Lyon', 'role': 'admin'})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    address, fields = party_manager.update_party.await_args.args
    assert fields == {'location': 'Lyon'}

def test_update_party_requires_token(client):
    response = client.put('/users/0xaaa', json={'name': 'X'})

    assert response.status_code in (401, 403)

def test_create_duplicate_inventory_item(client, inventory_manager):
    inventory_manager.create_item = AsyncMock(side_effect=InventoryItemExistsError('0xdist', 'Insulin'))

    response = client.post('/inventory', json={
        'walletAddress': '0xdist',
        'name': 'Insulin',
        'quantity': 5,
        'price': '12.00',
        'category': 'Hormones'
    })

    assert response.status_code == 409

def test_list_inventory(client, inventory_manager):
    inventory_manager.list_items = AsyncMock(return_value=[{'name': 'Insulin', 'quantity': 5}])

    response = client.get('/inventory', params={'walletAddress': '0xDIST'})

    assert response.status_code == 200
    assert response.json() == [{'name': 'Insulin', 'quantity': 5}]
    inventory_manager.list_items.assert_awaited_once_with('0xDIST')

def test_delete_inventory_item(client, inventory_manager):
    inventory_manager.delete_item = AsyncMock(return_value=None)

    response = client.delete('/inventory', params={'walletAddress': '0xdist', 'name': 'Insulin'})

    assert response.status_code == 200
    inventory_manager.delete_item.assert_awaited_once_with('0xdist', 'Insulin')

def test_health_reports_database_down(client):
    with patch('api.system.get_pool', AsyncMock(side_effect=OSError("connection refused"))):
        response = client.get('/system/health')

    assert response.status_code == 200
    body = response.json()
    assert body['status'] == 'degraded'
    assert body['database_status'] == 'unreachable'
