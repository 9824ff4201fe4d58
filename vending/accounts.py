"""
accounts.py - Account/Config Ledger

This module owns the administrator configuration and every balance:
1. load_config() / save_config() / require_admin() - the Config record
2. AggregatedAccounts - collected counter only; buyers pay with an external token
3. TokenLedgerAccounts - per-identity balances of a self-issued, capped token
4. accounts_for() - strategy selection by Config.mode
5. compute_withdraw() / compute_issue() - the admin money operations

Both strategies implement the AccountLedger protocol, so the purchase and
withdrawal transitions never branch on the mode themselves.

Balance invariants:
    balance(identity) >= 0 for every identity
    collected >= 0
    Ledger mode: total_supply <= supply_cap and
                 total_supply == collected + Σ balance(identity)
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional, Type

from .core import (
    # Types
    Config, Context, Funds, TransferInstruction, PendingTransition,
    Withdraw, Issue, StoreView,
    # Constants
    CONFIG_KEY, MACHINE_ACCOUNT, MAX_UINT128, FUNDS_TOKEN,
    MODE_AGGREGATED, MODE_LEDGER,
    # Exceptions
    Unauthorized, InvalidZeroAmount, NotEnoughFunds, WrongToken,
    CapExceeded, InvalidRecipient, StorageError, Overflow, Unsupported,
    # Helpers
    balance_key, encode_record, decode_record, is_valid_identity, build_transition,
)
from .store import StagedStore


# ============================================================================
# CONFIG RECORD
# ============================================================================

def load_config(view: StoreView) -> Config:
    """
    Load the configuration record.

    Raises:
        StorageError: If the machine has not been instantiated
    """
    raw = view.get(CONFIG_KEY)
    if raw is None:
        raise StorageError("config not found, machine is not instantiated")
    return Config.from_record(decode_record(raw))


def save_config(staged: StagedStore, config: Config) -> None:
    staged.put(CONFIG_KEY, encode_record(config.to_record()))


def require_admin(config: Config, sender: str) -> None:
    if sender != config.admin:
        raise Unauthorized()


def checked_add(a: int, b: int) -> int:
    total = a + b
    if total > MAX_UINT128:
        raise Overflow(f"{a} + {b}")
    return total


def _check_payment(config: Config, payment: Optional[Funds]) -> None:
    if payment is None:
        return
    if payment.kind != FUNDS_TOKEN or payment.denom != config.token:
        raise WrongToken(f"expected {config.token}, got {payment.denom}")


# ============================================================================
# AGGREGATED MODE
# ============================================================================

class AggregatedAccounts:
    """
    Collected-balance strategy for an externally issued token.

    Buyers pay by tendering the token with the purchase; the machine only
    counts what it has collected. Withdrawals become transfer instructions
    for the external token ledger.
    """

    def __init__(self, store: StoreView, config: Config):
        self.store = store
        self.config = config

    def balance_of(self, identity: str) -> int:
        if identity == MACHINE_ACCOUNT:
            return self.config.collected
        return 0

    def total_supply(self) -> int:
        return self.config.collected

    def _set_collected(self, value: int) -> None:
        self.config = replace(self.config, collected=value)
        save_config(self.store, self.config)

    def debit(self, identity: str, amount: int) -> None:
        if identity != MACHINE_ACCOUNT:
            raise Unsupported(f"cannot debit {identity}, only the collected balance is tracked")
        if amount > self.config.collected:
            raise NotEnoughFunds(needed=amount, given=self.config.collected)
        self._set_collected(self.config.collected - amount)

    def credit(self, identity: str, amount: int) -> None:
        if identity != MACHINE_ACCOUNT:
            raise Unsupported(f"cannot credit {identity}, only the collected balance is tracked")
        self._set_collected(checked_add(self.config.collected, amount))

    def available_funds(self, buyer: str, payment: Optional[Funds]) -> int:
        _check_payment(self.config, payment)
        return payment.amount if payment is not None else 0

    def collect_payment(
        self, buyer: str, price: int, payment: Optional[Funds]
    ) -> List[TransferInstruction]:
        """Credit price to the collected balance and refund any overpayment."""
        self.credit(MACHINE_ACCOUNT, price)
        excess = self.available_funds(buyer, payment) - price
        if excess <= 0:
            return []
        return [TransferInstruction(self.config.token, MACHINE_ACCOUNT, buyer, excess)]

    def withdraw(self, amount: int) -> List[TransferInstruction]:
        self.debit(MACHINE_ACCOUNT, amount)
        return [TransferInstruction(self.config.token, MACHINE_ACCOUNT, self.config.admin, amount)]

    def issue(self, recipient: str, amount: int) -> int:
        raise Unsupported("issuance requires ledger mode")


# ============================================================================
# LEDGER MODE
# ============================================================================

class TokenLedgerAccounts:
    """
    Per-identity balances of a self-issued token with a capped supply.

    Sales revenue is held in the collected balance (MACHINE_ACCOUNT) and is
    burned on withdrawal, which keeps total_supply equal to the sum of all
    balances.
    """

    def __init__(self, store: StoreView, config: Config):
        self.store = store
        self.config = config

    def balance_of(self, identity: str) -> int:
        if identity == MACHINE_ACCOUNT:
            return self.config.collected
        raw = self.store.get(balance_key(identity))
        if raw is None:
            return 0
        return decode_record(raw)["balance"]

    def total_supply(self) -> int:
        return self.config.total_supply

    def _set_balance(self, identity: str, value: int) -> None:
        if identity == MACHINE_ACCOUNT:
            self.config = replace(self.config, collected=value)
            save_config(self.store, self.config)
        else:
            self.store.put(balance_key(identity), encode_record({"balance": value}))

    def debit(self, identity: str, amount: int) -> None:
        balance = self.balance_of(identity)
        if amount > balance:
            raise NotEnoughFunds(needed=amount, given=balance)
        self._set_balance(identity, balance - amount)

    def credit(self, identity: str, amount: int) -> None:
        self._set_balance(identity, checked_add(self.balance_of(identity), amount))

    def available_funds(self, buyer: str, payment: Optional[Funds]) -> int:
        _check_payment(self.config, payment)
        return self.balance_of(buyer)

    def collect_payment(
        self, buyer: str, price: int, payment: Optional[Funds]
    ) -> List[TransferInstruction]:
        """Move price from the buyer's balance to the collected balance."""
        self.debit(buyer, price)
        self.credit(MACHINE_ACCOUNT, price)
        return []

    def withdraw(self, amount: int) -> List[TransferInstruction]:
        """Burn amount from the collected balance."""
        self.debit(MACHINE_ACCOUNT, amount)
        self.config = replace(self.config, total_supply=self.config.total_supply - amount)
        save_config(self.store, self.config)
        return []

    def issue(self, recipient: str, amount: int) -> int:
        """
        Issue new tokens to recipient and return the recipient's new balance.

        The cap is checked before the recipient, so an issuance that is both over
        the cap and misaddressed reports CapExceeded.
        """
        new_total = self.config.total_supply + amount
        if new_total > self.config.supply_cap:
            raise CapExceeded(f"{new_total} > {self.config.supply_cap}")
        self.config = replace(self.config, total_supply=new_total)
        save_config(self.store, self.config)

        if not is_valid_identity(recipient) or recipient == MACHINE_ACCOUNT:
            raise InvalidRecipient(repr(recipient))
        self.credit(recipient, amount)
        return self.balance_of(recipient)


_STRATEGIES: Dict[str, Type] = {
    MODE_AGGREGATED: AggregatedAccounts,
    MODE_LEDGER: TokenLedgerAccounts,
}


def accounts_for(store: StoreView, config: Config):
    """Return the AccountLedger strategy for config.mode."""
    try:
        strategy = _STRATEGIES[config.mode]
    except KeyError:
        raise StorageError(f"unknown ledger mode in config: {config.mode!r}") from None
    return strategy(store, config)


# ============================================================================
# TRANSITIONS
# ============================================================================

def compute_withdraw(staged: StagedStore, ctx: Context, op: Withdraw) -> PendingTransition:
    """
    Withdraw collected revenue.

    Aggregated mode attaches a transfer of amount to the admin; ledger mode
    burns amount from the collected balance.

    Raises:
        Unauthorized: caller is not the admin
        InvalidZeroAmount: amount is zero
        NotEnoughFunds: amount exceeds the collected balance
    """
    config = load_config(staged)
    require_admin(config, ctx.sender)
    if op.amount == 0:
        raise InvalidZeroAmount()

    accounts = accounts_for(staged, config)
    messages = accounts.withdraw(op.amount)
    return build_transition(staged, ctx, op, [("withdrawn", op.amount)], messages)


def compute_issue(staged: StagedStore, ctx: Context, op: Issue) -> PendingTransition:
    """
    Issue self-issued tokens.

    Raises:
        Unauthorized: caller is not the admin
        CapExceeded: total supply would exceed the cap
        InvalidRecipient: recipient is not a well-formed identity
        Unsupported: the machine runs in aggregated mode
    """
    config = load_config(staged)
    require_admin(config, ctx.sender)

    accounts = accounts_for(staged, config)
    balance = accounts.issue(op.recipient, op.amount)
    return build_transition(
        staged, ctx, op,
        [("recipient", op.recipient), ("balance", balance)],
    )
