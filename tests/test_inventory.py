"""Tests for the inventory module and its read-through cache."""

import pytest
from asyncpg.exceptions import UniqueViolationError

from inventory import (
    InventoryManager,
    InventoryCache,
    InventoryItemExistsError,
    InventoryItemNotFoundError,
    InvalidInventoryError
)

ITEM = {
    'wallet_address': '0xdist',
    'name': 'Paracetamol 500mg',
    'description': 'Strip of 10',
    'quantity': 40,
    'price': '2.50',
    'category': 'Analgesics'
}

def test_cache_returns_copies():
    cache = InventoryCache()
    cache.set('0xABC', [{'name': 'Insulin', 'quantity': 5}])

    first = cache.get('0xabc')
    first[0]['quantity'] = 0
    first.append({'name': 'Injected'})

    assert cache.get('0xabc') == [{'name': 'Insulin', 'quantity': 5}]

def test_cache_invalidate_and_clear():
    cache = InventoryCache()
    cache.set('0xa', [])
    cache.set('0xb', [])

    cache.invalidate('0xA', '0xunknown')
    assert cache.get('0xa') is None
    assert '0xb' in cache

    cache.clear()
    assert len(cache) == 0

@pytest.mark.asyncio
async def test_list_items_reads_through_cache(fake_pool, fake_conn):
    fake_conn.fetch.return_value = [{'name': 'Paracetamol 500mg', 'quantity': 40}]
    manager = InventoryManager(fake_pool, InventoryCache())

    first = await manager.list_items('0xDIST')
    second = await manager.list_items('0xdist')

    assert first == second == [{'name': 'Paracetamol 500mg', 'quantity': 40}]
    assert fake_conn.fetch.await_count == 1

def test_cache_skips_store_after_eviction():
    cache = InventoryCache()
    generation = cache.generation('0xa')
    cache.invalidate('0xA')

    assert cache.set('0xa', [{'name': 'Insulin'}], generation) is False
    assert cache.get('0xa') is None

    assert cache.set('0xa', [], cache.generation('0xa')) is True
    assert cache.get('0xa') == []

def test_cache_skips_store_after_clear():
    cache = InventoryCache()
    generation = cache.generation('0xa')
    cache.clear()

    assert cache.set('0xa', [], generation) is False
    assert '0xa' not in cache

@pytest.mark.asyncio
async def test_list_items_does_not_cache_rows_read_before_a_write(fake_pool, fake_conn):
    cache = InventoryCache()
    stale = [{'wallet_address': '0xaaa', 'name': 'Paracetamol', 'quantity': 40}]

    def read_while_item_changes(*args):
        # A concurrent update commits and evicts between our query and the store
        cache.invalidate('0xaaa')
        return stale

    fake_conn.fetch.side_effect = read_while_item_changes
    manager = InventoryManager(fake_pool, cache)

    assert await manager.list_items('0xAAA') == stale
    assert cache.get('0xaaa') is None

    fake_conn.fetch.side_effect = None
    fake_conn.fetch.return_value = [{'wallet_address': '0xaaa', 'name': 'Paracetamol', 'quantity': 25}]
    assert (await manager.list_items('0xaaa'))[0]['quantity'] == 25
    assert fake_conn.fetch.await_count == 2

@pytest.mark.asyncio
async def test_create_item_evicts_cache(fake_pool, fake_conn):
    cache = InventoryCache()
    cache.set('0xdist', [])
    fake_conn.fetchrow.return_value = {**ITEM}

    await InventoryManager(fake_pool, cache).create_item(**ITEM)

    assert cache.get('0xdist') is None

@pytest.mark.asyncio
async def test_create_duplicate_item(fake_pool, fake_conn):
    cache = InventoryCache()
    cache.set('0xdist', [{'name': 'Paracetamol 500mg'}])
    fake_conn.fetchrow.side_effect = UniqueViolationError('duplicate key')

    with pytest.raises(InventoryItemExistsError):
        await InventoryManager(fake_pool, cache).create_item(**ITEM)

    assert cache.get('0xdist') == [{'name': 'Paracetamol 500mg'}]

@pytest.mark.asyncio
async def test_create_item_rejects_negative_quantity(fake_pool, fake_conn):
    with pytest.raises(InvalidInventoryError):
        await InventoryManager(fake_pool, InventoryCache()).create_item(**{**ITEM, 'quantity': -1})
    fake_conn.fetchrow.assert_not_awaited()

@pytest.mark.asyncio
async def test_update_missing_item(fake_pool, fake_conn):
    fake_conn.fetchrow.return_value = None

    with pytest.raises(InventoryItemNotFoundError):
        await InventoryManager(fake_pool, InventoryCache()).update_item('0xdist', 'Unknown', {'quantity': 3})

@pytest.mark.asyncio
async def test_update_item_ignores_key_fields(fake_pool, fake_conn):
    fake_conn.fetchrow.return_value = {**ITEM, 'quantity': 3}

    await InventoryManager(fake_pool, InventoryCache()).update_item(
        '0xDIST', 'Paracetamol 500mg', {'quantity': 3, 'name': 'Renamed', 'wallet_address': '0xother'}
    )

    query, *params = fake_conn.fetchrow.await_args.args
    assert params == ['0xdist', 'Paracetamol 500mg', 3]
    assert "quantity = $3" in query

@pytest.mark.asyncio
@pytest.mark.parametrize("fields", [
    {'description': None},
    {'price': None},
    {'category': None},
    {'category': ''},
])
async def test_update_item_rejects_null_required_fields(fake_pool, fake_conn, fields):
    with pytest.raises(InvalidInventoryError):
        await InventoryManager(fake_pool, InventoryCache()).update_item('0xdist', 'Paracetamol 500mg', fields)

    fake_conn.fetchrow.assert_not_awaited()

@pytest.mark.asyncio
async def test_update_item_clears_image(fake_pool, fake_conn):
    fake_conn.fetchrow.return_value = {**ITEM, 'image_url': None}

    await InventoryManager(fake_pool, InventoryCache()).update_item('0xdist', 'Paracetamol 500mg', {'image_url': None})

    assert fake_conn.fetchrow.await_args.args[1:] == ('0xdist', 'Paracetamol 500mg', None)

@pytest.mark.asyncio
async def test_delete_missing_item(fake_pool, fake_conn):
    fake_conn.fetchval.return_value = None

    with pytest.raises(InventoryItemNotFoundError):
        await InventoryManager(fake_pool, InventoryCache()).delete_item('0xdist', 'Unknown')

@pytest.mark.asyncio
async def test_list_by_role_groups_items(fake_pool, fake_conn):
    fake_conn.fetch.return_value = [
        {'party_address': '0xa', 'party_name': 'A', 'company_name': 'A Co', 'name': 'Insulin',
         'description': '', 'quantity': 5, 'price': 1, 'category': 'Hormones', 'image_url': None},
        {'party_address': '0xa', 'party_name': 'A', 'company_name': 'A Co', 'name': 'Paracetamol',
         'description': '', 'quantity': 9, 'price': 1, 'category': 'Analgesics', 'image_url': None},
        {'party_address': '0xb', 'party_name': 'B', 'company_name': 'B Co', 'name': None,
         'description': None, 'quantity': None, 'price': None, 'category': None, 'image_url': None},
    ]

    groups = await InventoryManager(fake_pool, InventoryCache()).list_by_role('distributor')

    assert [g['wallet_address'] for g in groups] == ['0xa', '0xb']
    assert [i['name'] for i in groups[0]['items']] == ['Insulin', 'Paracetamol']
    assert groups[1]['items'] == []

@pytest.mark.asyncio
async def test_list_by_unknown_role(fake_pool):
    with pytest.raises(InvalidInventoryError):
        await InventoryManager(fake_pool, InventoryCache()).list_by_role('wholesaler')
