"""
conftest.py - Shared pytest fixtures for vending tests

Provides common fixtures used across unit, conformance and functional tests:
- Instantiated machines in both ledger modes
- Machines with a stocked catalog and funded buyers
- An external token ledger for dispatching transfer instructions
"""

import pytest

from vending import MemoryStore, AddItem, Issue

from tests.fake_token import FakeTokenLedger
from tests.machines import ADMIN, BUYER, ctx, make_aggregated, make_ledger


# =============================================================================
# MACHINE FIXTURES
# =============================================================================

@pytest.fixture
def store():
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def aggregated_machine(store):
    """Aggregated-mode machine paid in coffee_token, empty catalog."""
    return make_aggregated(store)


@pytest.fixture
def ledger_machine(store):
    """Ledger-mode machine issuing COFFEE with the default cap, empty catalog."""
    return make_ledger(store)


@pytest.fixture
def stocked_aggregated(aggregated_machine):
    """Aggregated machine selling Americano (3 @ 2) and Latte (1 @ 4)."""
    aggregated_machine.execute(ctx(ADMIN), AddItem("Americano", stock=3, price=2)).unwrap()
    aggregated_machine.execute(ctx(ADMIN), AddItem("Latte", stock=1, price=4)).unwrap()
    return aggregated_machine


@pytest.fixture
def stocked_ledger(ledger_machine):
    """Ledger machine selling Americano (3 @ 2) and Latte (1 @ 4); alice holds 10."""
    ledger_machine.execute(ctx(ADMIN), AddItem("Americano", stock=3, price=2)).unwrap()
    ledger_machine.execute(ctx(ADMIN), AddItem("Latte", stock=1, price=4)).unwrap()
    ledger_machine.execute(ctx(ADMIN), Issue(BUYER, 10)).unwrap()
    return ledger_machine


# =============================================================================
# COLLABORATORS
# =============================================================================

@pytest.fixture
def token_ledger():
    """External token ledger; the machine account starts empty."""
    return FakeTokenLedger()
