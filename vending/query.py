"""
query.py - Query Engine

Read-only queries over a StoreView:
- list_items(): one lazy page of the catalog in ascending name order
- iter_catalog(): the whole catalog, fetched page by page
- query_balance(), query_config(), query_token_info(), query_contract_version()

Pagination contract:
    Pages are ordered by the UTF-8 bytes of the name. The cursor is an
    exclusive lower bound, so passing the last name of one page as the cursor
    of the next walks the catalog without gaps or duplicates, provided the
    catalog is not written between calls. Run queries against a
    MemoryStore.snapshot() to isolate them from a concurrent writer.
"""

from __future__ import annotations
from typing import Dict, Iterator, Optional

from .core import (
    Item, Config, TokenInfo, StoreView,
    CATALOG_PREFIX, CONTRACT_INFO_KEY, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MODE_LEDGER,
    StorageError, Unsupported,
    item_key, name_from_key, decode_record,
)
from .accounts import load_config, accounts_for


def clamp_page_size(page_size: Optional[int]) -> int:
    """Default to DEFAULT_PAGE_SIZE and never exceed MAX_PAGE_SIZE."""
    if page_size is None:
        return DEFAULT_PAGE_SIZE
    return max(0, min(page_size, MAX_PAGE_SIZE))


def list_items(
    view: StoreView,
    cursor: Optional[str] = None,
    page_size: Optional[int] = None,
) -> Iterator[Item]:
    """
    Lazily yield up to page_size items with name > cursor, in ascending order.

    Args:
        view: Store to read
        cursor: Exclusive lower bound (the last name already seen), or None
        page_size: Requested page size; defaults to 10, clamped to 30

    Example:
        page = list(list_items(store, page_size=5))
        next_page = list(list_items(store, cursor=page[-1].name, page_size=5))

    Raises:
        ValueError: If cursor is not valid UTF-8 text
    """
    start = item_key(cursor) if cursor else CATALOG_PREFIX
    return _page(view, start, clamp_page_size(page_size))


def _page(view: StoreView, start: bytes, limit: int) -> Iterator[Item]:
    if limit == 0:
        return
    count = 0
    for key, raw in view.scan(start):
        if not key.startswith(CATALOG_PREFIX):
            return
        yield Item.from_record(name_from_key(key), decode_record(raw))
        count += 1
        if count >= limit:
            return


def iter_catalog(view: StoreView, page_size: int = MAX_PAGE_SIZE) -> Iterator[Item]:
    """Yield every catalog entry by following the cursor from page to page."""
    limit = clamp_page_size(page_size)
    if limit == 0:
        raise ValueError("page_size must be positive")
    cursor = None
    while True:
        page = list(list_items(view, cursor, limit))
        yield from page
        if len(page) < limit:
            return
        cursor = page[-1].name


def query_config(view: StoreView) -> Config:
    return load_config(view)


def query_balance(view: StoreView, identity: str) -> int:
    """Balance of identity under the configured ledger mode."""
    config = load_config(view)
    return accounts_for(view, config).balance_of(identity)


def query_token_info(view: StoreView) -> TokenInfo:
    """Describe the self-issued token. Ledger mode only."""
    config = load_config(view)
    if config.mode != MODE_LEDGER:
        raise Unsupported("token info requires ledger mode")
    return TokenInfo(
        name=config.token_name,
        symbol=config.token,
        decimals=config.decimals,
        total_supply=config.total_supply,
        cap=config.supply_cap,
    )


def query_contract_version(view: StoreView) -> Dict[str, str]:
    raw = view.get(CONTRACT_INFO_KEY)
    if raw is None:
        raise StorageError("contract info not found, machine is not instantiated")
    return decode_record(raw)
