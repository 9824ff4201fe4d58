"""
purchase.py - Purchase transition

One purchase sells exactly one unit:

    Step 1: the item must exist and have stock
    Step 2: the buyer's funds come from the AccountLedger strategy
            (the tendered payment in aggregated mode, the recorded balance
            in ledger mode) and must be in the configured token
    Step 3: the funds must cover the price
    Step 4: stock -= 1 and the price moves to the collected balance

Step 4's writes land in the same StagedStore, so the stock decrement and the
payment are committed together or not at all.
"""

from __future__ import annotations
from dataclasses import replace

from .core import (
    Context, PendingTransition, Purchase, MACHINE_ACCOUNT,
    OutOfStock, NotEnoughFunds, Unauthorized, build_transition,
)
from .store import StagedStore
from .accounts import load_config, accounts_for
from .catalog import require_item, save_item


def compute_purchase(staged: StagedStore, ctx: Context, op: Purchase) -> PendingTransition:
    """
    Sell one unit of op.name to ctx.sender.

    Raises:
        NotFound: no such item
        OutOfStock: stock is zero
        Unauthorized: the buyer is the machine account itself
        WrongToken: tendered funds are not the configured token
        NotEnoughFunds: funds are below the price

    Returns:
        PendingTransition with the item and balance writes, attribute
        purchased=<name>, and in aggregated mode a refund instruction when the
        buyer overpaid.
    """
    item = require_item(staged, op.name)
    if item.stock == 0:
        raise OutOfStock(op.name)
    # The collected balance is revenue, never a buyer's funds
    if ctx.sender == MACHINE_ACCOUNT:
        raise Unauthorized("the machine account cannot purchase")

    config = load_config(staged)
    accounts = accounts_for(staged, config)
    available = accounts.available_funds(ctx.sender, ctx.funds)
    if available < item.price:
        raise NotEnoughFunds(needed=item.price, given=available)

    save_item(staged, replace(item, stock=item.stock - 1))
    messages = accounts.collect_payment(ctx.sender, item.price, ctx.funds)
    return build_transition(staged, ctx, op, [("purchased", op.name)], messages)
