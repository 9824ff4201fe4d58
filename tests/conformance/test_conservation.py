"""
Conservation Conformance Tests

INVARIANT: In ledger mode, every issued token is accounted for.

    total_supply == collected + Σ balance(identity)

Purchases move tokens from a buyer to the collected balance, issuance adds
to both sides, and withdrawal burns from the collected balance.
"""

import pytest
from hypothesis import given, settings

from vending import MemoryStore, Purchase, Issue, Withdraw, MACHINE_ACCOUNT
from vending.core import BALANCE_PREFIX, decode_record

from tests.machines import ADMIN, BUYER, OTHER, ctx, make_ledger
from .strategies import requests


def _sum_balances(store) -> int:
    total = 0
    for key, raw in store.scan(BALANCE_PREFIX):
        if not key.startswith(BALANCE_PREFIX):
            break
        total += decode_record(raw)["balance"]
    return total


class TestConservationProperties:

    @given(requests)
    @settings(max_examples=150)
    def test_supply_equals_collected_plus_balances(self, reqs):
        """
        PROPERTY: total_supply == collected + Σ balances after every operation.
        """
        store = MemoryStore()
        machine = make_ledger(store, supply_cap=200)
        for sender, op in reqs:
            machine.execute(ctx(sender), op)
            config = machine.config
            assert config.total_supply == config.collected + _sum_balances(store)

    @given(requests)
    @settings(max_examples=100)
    def test_collected_grows_by_price(self, reqs):
        """
        PROPERTY: An applied purchase raises collected by exactly the item price.
        """
        machine = make_ledger(MemoryStore())
        machine.execute(ctx(ADMIN), Issue(BUYER, 50)).unwrap()
        for sender, op in reqs:
            item = machine.get_item(op.name) if isinstance(op, Purchase) else None
            collected = machine.config.collected
            outcome = machine.execute(ctx(sender), op)
            if item is not None and outcome.ok:
                assert machine.config.collected == collected + item.price


class TestConservationExamples:

    def test_purchase_then_withdraw(self, stocked_ledger, store):
        stocked_ledger.execute(ctx(BUYER), Purchase("Latte")).unwrap()
        stocked_ledger.execute(ctx(ADMIN), Issue(OTHER, 5)).unwrap()
        stocked_ledger.execute(ctx(ADMIN), Withdraw(4)).unwrap()

        assert stocked_ledger.balance_of(BUYER) == 6
        assert stocked_ledger.balance_of(OTHER) == 5
        assert stocked_ledger.balance_of(MACHINE_ACCOUNT) == 0
        assert stocked_ledger.total_supply() == 11 == _sum_balances(store)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
