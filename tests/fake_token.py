"""
fake_token.py - Test Helper for TokenTransfer

Provides a minimal external token ledger so tests can dispatch the transfer
instructions attached to aggregated-mode outcomes.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from vending import TransferError


class FakeTokenLedger:
    """
    Minimal TokenTransfer implementation.

    Example:
        tokens = FakeTokenLedger({'vending_machine': 5})
        tokens.transfer('vending_machine', 'admin', 2)
        assert tokens.balance('admin') == 2
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None, fail: bool = False):
        self.balances: Dict[str, int] = dict(balances or {})
        self.fail = fail
        self.transfers: List[Tuple[str, str, int]] = []

    def balance(self, identity: str) -> int:
        return self.balances.get(identity, 0)

    def mint(self, identity: str, amount: int) -> None:
        self.balances[identity] = self.balance(identity) + amount

    def transfer(self, from_identity: str, to_identity: str, amount: int) -> None:
        if self.fail:
            raise TransferError("token ledger unavailable")
        if self.balance(from_identity) < amount:
            raise TransferError(f"{from_identity} holds {self.balance(from_identity)}, needs {amount}")
        self.balances[from_identity] = self.balance(from_identity) - amount
        self.balances[to_identity] = self.balance(to_identity) + amount
        self.transfers.append((from_identity, to_identity, amount))
