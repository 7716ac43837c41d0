"""Tests for address and wallet resolution."""

import pytest

from processor.exceptions import NotFoundError
from processor.resolver import AddressResolver, collect_addresses


def test_collect_addresses_flattens_and_deduplicates(store):
    transactions = [
        store.add_transaction("tx-1", [("A", 1), ("B", 1)], [("C", 1), ("A", 0.5)]),
        store.add_transaction("tx-2", [("C", 2)], [("D", 1), ("a", 1)]),
    ]

    assert collect_addresses(transactions) == ["A", "B", "C", "D", "a"]


@pytest.mark.asyncio
async def test_resolve_returns_addresses_and_wallets(store):
    store.add_wallet("w1", label="Savings")
    store.add_wallet("w2", label="Spending")
    store.add_wallet("w3", label="Untouched")
    store.add_address("A", "w1")
    store.add_address("B", "w2")
    store.add_address("C", "w1")

    addresses, wallets = await AddressResolver(store).resolve("user-1", ["A", "B", "C", "X"])

    assert sorted(a.address for a in addresses) == ["A", "B", "C"]
    assert sorted(w.id for w in wallets) == ["w1", "w2"]


@pytest.mark.asyncio
async def test_resolve_is_scoped_to_user(store):
    store.add_wallet("w1", user_id="someone-else")
    store.add_address("A", "w1", user_id="someone-else")

    with pytest.raises(NotFoundError):
        await AddressResolver(store).resolve("user-1", ["A"])


@pytest.mark.asyncio
async def test_resolve_without_wallets_raises(store):
    store.add_address("A", None)

    with pytest.raises(NotFoundError):
        await AddressResolver(store).resolve("user-1", ["A", "B"])


@pytest.mark.asyncio
async def test_address_ids_are_case_sensitive(store):
    store.add_wallet("w1")
    store.add_address("Abc", "w1")

    mapping = await AddressResolver(store).address_ids("user-1", ["Abc", "abc"])

    assert mapping == {"Abc": "addr-Abc"}
