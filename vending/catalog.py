"""
catalog.py - Catalog Ledger

Maps item name -> (stock, price) and owns the stock/price invariants:

    0 <= stock <= MAX_STOCK
    price > 0

Functions:
1. load_item() / require_item() / save_item() - record access
2. compute_add_item() - insert a new entry
3. compute_reprice() - overwrite the price of an entry
4. compute_restock() - add stock to an entry

All compute_* functions are admin-only, take a StagedStore and return a
PendingTransition. They raise a VendingError subclass on the first failed
check; the machine then discards every buffered write.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Optional

from .core import (
    Item, Context, PendingTransition, StoreView,
    AddItem, Reprice, Restock,
    MAX_STOCK,
    InvalidZeroPrice, InvalidZeroAmount, AmountTooBig, AlreadyExists, NotFound,
    item_key, encode_record, decode_record, build_transition,
)
from .store import StagedStore
from .accounts import load_config, require_admin


def load_item(view: StoreView, name: str) -> Optional[Item]:
    """Return the catalog entry for name, or None if absent."""
    raw = view.get(item_key(name))
    if raw is None:
        return None
    return Item.from_record(name, decode_record(raw))


def require_item(view: StoreView, name: str) -> Item:
    item = load_item(view, name)
    if item is None:
        raise NotFound(name)
    return item


def save_item(staged: StagedStore, item: Item) -> None:
    staged.put(item_key(item.name), encode_record(item.to_record()))


def compute_add_item(staged: StagedStore, ctx: Context, op: AddItem) -> PendingTransition:
    """
    Add a new catalog entry.

    Checks, in order: admin, non-zero price, stock within MAX_STOCK,
    name not already present.
    """
    config = load_config(staged)
    require_admin(config, ctx.sender)
    if op.price == 0:
        raise InvalidZeroPrice()
    if op.stock > MAX_STOCK:
        raise AmountTooBig(f"{op.stock} > {MAX_STOCK}")
    if staged.has(item_key(op.name)):
        raise AlreadyExists(op.name)

    save_item(staged, Item(name=op.name, stock=op.stock, price=op.price))
    return build_transition(
        staged, ctx, op,
        [("name", op.name), ("stock", op.stock), ("price", op.price)],
    )


def compute_reprice(staged: StagedStore, ctx: Context, op: Reprice) -> PendingTransition:
    """Overwrite the price of an existing entry. Stock is left untouched."""
    config = load_config(staged)
    require_admin(config, ctx.sender)
    if op.price == 0:
        raise InvalidZeroAmount()
    item = require_item(staged, op.name)

    save_item(staged, replace(item, price=op.price))
    return build_transition(staged, ctx, op, [("name", op.name), ("price", op.price)])


def compute_restock(staged: StagedStore, ctx: Context, op: Restock) -> PendingTransition:
    """
    Add op.amount units to an existing entry.

    Overflowing MAX_STOCK is an error; the stock is never clamped.
    """
    config = load_config(staged)
    require_admin(config, ctx.sender)
    if op.amount == 0:
        raise InvalidZeroAmount()
    item = require_item(staged, op.name)

    new_stock = item.stock + op.amount
    if new_stock > MAX_STOCK:
        raise AmountTooBig(f"{item.stock} + {op.amount} > {MAX_STOCK}")

    save_item(staged, replace(item, stock=new_stock))
    return build_transition(staged, ctx, op, [("name", op.name), ("stock", new_stock)])
