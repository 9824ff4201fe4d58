"""
vending - Ledger-and-Inventory State Machine

A transactional state machine over a catalog of items and a token ledger,
stored in an ordered key-value store.

Usage:
    from vending import (
        VendingMachine, MemoryStore, Context, MODE_LEDGER,
        AddItem, Restock, Purchase, Issue, Withdraw,
    )

    machine = VendingMachine(MemoryStore())
    machine.instantiate(Context("admin"), MODE_LEDGER, "COFFEE", token_name="Coffee Token")

    # Stock the catalog and fund a buyer
    machine.execute(Context("admin"), AddItem("Americano", stock=3, price=2))
    machine.execute(Context("admin"), Issue("alice", 10))

    # Buy one unit
    outcome = machine.execute(Context("alice"), Purchase("Americano"))
    assert outcome.ok

    # Page through the catalog
    for item in machine.list_items(page_size=10):
        print(item.name, item.stock, item.price)
"""

# Core types
from .core import (
    Item,
    Config,
    TokenInfo,
    Funds,
    Context,
    StateChange,
    TransferInstruction,
    PendingTransition,
    Transition,
    Outcome,
    ExecuteResult,
    StoreView,
    KeyValueStore,
    TokenTransfer,
    AccountLedger,
    build_transition,
    # Operations
    Operation,
    OPERATION_TYPES,
    AddItem,
    Reprice,
    Restock,
    Purchase,
    Withdraw,
    Issue,
    # Exceptions
    VendingError,
    Unauthorized,
    InvalidZeroPrice,
    InvalidZeroAmount,
    AmountTooBig,
    AlreadyExists,
    NotFound,
    OutOfStock,
    WrongToken,
    NotEnoughFunds,
    CapExceeded,
    InvalidRecipient,
    StorageError,
    Overflow,
    Unsupported,
    InvariantViolation,
    TransferError,
    # Constants
    CONTRACT_NAME,
    CONTRACT_VERSION,
    MAX_STOCK,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    DEFAULT_SUPPLY_CAP,
    MAX_UINT128,
    MODE_AGGREGATED,
    MODE_LEDGER,
    MACHINE_ACCOUNT,
    FUNDS_TOKEN,
    FUNDS_NATIVE,
    is_valid_identity,
)

# Storage
from .store import MemoryStore, StagedStore

# Ledgers
from .accounts import (
    AggregatedAccounts,
    TokenLedgerAccounts,
    accounts_for,
    load_config,
    compute_withdraw,
    compute_issue,
)
from .catalog import (
    load_item,
    compute_add_item,
    compute_reprice,
    compute_restock,
)
from .purchase import compute_purchase

# Queries
from .query import (
    list_items,
    iter_catalog,
    query_balance,
    query_config,
    query_token_info,
    query_contract_version,
)

# Engine
from .machine import VendingMachine
from .executor import SerialExecutor, Request

__all__ = [
    # Core
    'Item', 'Config', 'TokenInfo', 'Funds', 'Context', 'StateChange',
    'TransferInstruction', 'PendingTransition', 'Transition', 'Outcome', 'ExecuteResult',
    'StoreView', 'KeyValueStore', 'TokenTransfer', 'AccountLedger', 'build_transition',
    # Operations
    'Operation', 'OPERATION_TYPES',
    'AddItem', 'Reprice', 'Restock', 'Purchase', 'Withdraw', 'Issue',
    # Exceptions
    'VendingError', 'Unauthorized', 'InvalidZeroPrice', 'InvalidZeroAmount',
    'AmountTooBig', 'AlreadyExists', 'NotFound', 'OutOfStock', 'WrongToken',
    'NotEnoughFunds', 'CapExceeded', 'InvalidRecipient', 'StorageError',
    'Overflow', 'Unsupported', 'InvariantViolation', 'TransferError',
    # Constants
    'CONTRACT_NAME', 'CONTRACT_VERSION', 'MAX_STOCK', 'DEFAULT_PAGE_SIZE', 'MAX_PAGE_SIZE',
    'DEFAULT_SUPPLY_CAP', 'MAX_UINT128', 'MODE_AGGREGATED', 'MODE_LEDGER',
    'MACHINE_ACCOUNT', 'FUNDS_TOKEN', 'FUNDS_NATIVE', 'is_valid_identity',
    # Storage
    'MemoryStore', 'StagedStore',
    # Ledgers
    'AggregatedAccounts', 'TokenLedgerAccounts', 'accounts_for', 'load_config',
    'compute_withdraw', 'compute_issue',
    'load_item', 'compute_add_item', 'compute_reprice', 'compute_restock',
    'compute_purchase',
    # Queries
    'list_items', 'iter_catalog', 'query_balance', 'query_config',
    'query_token_info', 'query_contract_version',
    # Engine
    'VendingMachine', 'SerialExecutor', 'Request',
]

__version__ = CONTRACT_VERSION
