"""Tests for the parties module."""

import pytest

from parties import (
    PartyManager,
    PartyExistsError,
    PartyNotFoundError,
    InvalidPartyError,
    normalize_address,
    sanitize_party_update
)

MANUFACTURER = {
    "wallet_address": "0xAbC123",
    "role": "manufacturer",
    "name": "Dana Reyes",
    "company_name": "Acme Pharma",
    "email": "dana@acme.example"
}

def test_normalize_address():
    assert normalize_address("  0xAbC123 ") == "0xabc123"

@pytest.mark.parametrize("address", ["", "   ", None])
def test_normalize_address_rejects_empty(address):
    with pytest.raises(InvalidPartyError):
        normalize_address(address)

def test_sanitize_party_update_strips_protected_fields():
    assert sanitize_party_update({
        "name": "New Name",
        "wallet_address": "0xother",
        "role": "admin",
        "verified": True
    }) == {"name": "New Name"}

@pytest.mark.asyncio
async def test_register_party_normalizes_and_starts_unverified(fake_pool, fake_conn):
    fake_conn.fetchrow.side_effect = [None, {**MANUFACTURER, "wallet_address": "0xabc123", "verified": False}]

    party = await PartyManager(fake_pool).register_party(**MANUFACTURER)

    assert party["wallet_address"] == "0xabc123"
    assert party["verified"] is False
    insert_args = fake_conn.fetchrow.await_args_list[1].args
    assert insert_args[1] == "0xabc123"
    assert "false" in insert_args[0]

@pytest.mark.asyncio
async def test_register_party_conflicts_regardless_of_case(fake_pool, fake_conn):
    """An address differing only in case is the same identity."""
    fake_conn.fetchrow.return_value = {"wallet_address": "0xabc123"}

    with pytest.raises(PartyExistsError):
        await PartyManager(fake_pool).register_party(**{**MANUFACTURER, "wallet_address": "0XABC123"})

    lookup = fake_conn.fetchrow.await_args.args
    assert lookup[1] == "0xabc123"

@pytest.mark.asyncio
async def test_register_party_rejects_unknown_role(fake_pool):
    with pytest.raises(InvalidPartyError):
        await PartyManager(fake_pool).register_party(**{**MANUFACTURER, "role": "wholesaler"})

@pytest.mark.asyncio
async def test_get_missing_party(fake_pool, fake_conn):
    fake_conn.fetchrow.return_value = None

    with pytest.raises(PartyNotFoundError):
        await PartyManager(fake_pool).get_party("0xNobody")

@pytest.mark.asyncio
async def test_update_party_ignores_role_and_address(fake_pool, fake_conn):
    fake_conn.fetchrow.return_value = {**MANUFACTURER, "location": "Lyon"}

    await PartyManager(fake_pool).update_party("0xABC123", {
        "location": "Lyon",
        "role": "admin",
        "wallet_address": "0xother"
    })

    query, *params = fake_conn.fetchrow.await_args.args
    assert "role" not in query
    assert params == ["0xabc123", "Lyon"]

@pytest.mark.asyncio
async def test_update_party_with_only_protected_fields(fake_pool):
    with pytest.raises(InvalidPartyError):
        await PartyManager(fake_pool).update_party("0xabc123", {"verified": True})

@pytest.mark.asyncio
async def test_update_missing_party(fake_pool, fake_conn):
    fake_conn.fetchrow.return_value = None

    with pytest.raises(PartyNotFoundError):
        await PartyManager(fake_pool).update_party("0xabc123", {"name": "X"})
