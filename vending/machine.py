"""
machine.py - Vending State Machine

The VendingMachine is the transition engine. It is the only object that writes
to the key-value store, so every change is validated and logged.

Key responsibilities:
    - Instantiates the configuration record once
    - Dispatches each operation to its pure compute_* function
    - Re-validates every buffered write against the state invariants
    - Commits all writes of an operation together, rolling back on store failure
    - Keeps the transition log and prints diagnostics when verbose
"""

from __future__ import annotations
from typing import Callable, Dict, Iterator, List, Optional

from .core import (
    # Types
    Item, Config, Context, Operation, PendingTransition, Transition, Outcome,
    ExecuteResult, KeyValueStore, StateChange,
    AddItem, Reprice, Restock, Purchase, Withdraw, Issue,
    # Constants
    CONTRACT_INFO_KEY, CONTRACT_NAME, CONTRACT_VERSION, CATALOG_PREFIX, BALANCE_PREFIX, CONFIG_KEY,
    MAX_STOCK, MAX_UINT128, DEFAULT_SUPPLY_CAP, MODES, MODE_LEDGER,
    # Exceptions
    VendingError, AlreadyExists, StorageError, InvariantViolation,
    # Helpers
    encode_record, decode_record, name_from_key, is_valid_identity,
)
from .store import StagedStore
from .accounts import load_config, save_config, accounts_for, compute_withdraw, compute_issue
from .catalog import load_item, compute_add_item, compute_reprice, compute_restock
from .purchase import compute_purchase
from . import query

TransitionFunction = Callable[[StagedStore, Context, Operation], PendingTransition]

# Closed set of operations. Anything else is rejected before the store is read.
_HANDLERS: Dict[type, TransitionFunction] = {
    AddItem: compute_add_item,
    Reprice: compute_reprice,
    Restock: compute_restock,
    Purchase: compute_purchase,
    Withdraw: compute_withdraw,
    Issue: compute_issue,
}


class VendingMachine:
    """
    Transactional state machine over a catalog and a token ledger.

    Each execute() call runs to completion against the store with no
    interleaving: either every write of the operation is committed or none is.

    Design Principles:
        - Always validates: compute_* functions check authorization and input,
          then the machine checks every buffered record against the invariants.
        - Always logs: every applied operation is appended to transition_log.

    Thread Safety:
        Not thread-safe. Operations must be submitted one at a time, for
        example through a SerialExecutor.

    Example:
        machine = VendingMachine(MemoryStore())
        machine.instantiate(Context("admin"), MODE_LEDGER, "COFFEE")
        machine.execute(Context("admin"), AddItem("Americano", stock=3, price=2))
        machine.execute(Context("admin"), Issue("alice", 10))
        outcome = machine.execute(Context("alice"), Purchase("Americano"))
    """

    def __init__(self, store: KeyValueStore, name: str = "vending", verbose: bool = True):
        """
        Create a machine over a store.

        Args:
            store: Key-value store holding all state
            name: Machine identifier used in execution IDs
            verbose: Print each applied or rejected operation (default: True)
        """
        self.store = store
        self.name = name
        self.verbose = verbose
        self.transition_log: List[Transition] = []
        self._next_sequence: int = 0

    # ========================================================================
    # INSTANTIATION
    # ========================================================================

    def instantiate(
        self,
        ctx: Context,
        mode: str,
        token: str,
        token_name: str = "",
        decimals: int = 0,
        supply_cap: int = DEFAULT_SUPPLY_CAP,
    ) -> Outcome:
        """
        Write the configuration record. The sender becomes the admin.

        Args:
            ctx: Host context; ctx.sender is the admin from now on
            mode: MODE_AGGREGATED or MODE_LEDGER
            token: External token identity (aggregated) or token symbol (ledger)
            token_name: Ledger mode display name
            decimals: Ledger mode display decimals
            supply_cap: Ledger mode cap on total supply

        Raises:
            ValueError: If the arguments are malformed

        Returns:
            Outcome rejected with AlreadyExists if already instantiated
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode!r}")
        if not isinstance(token, str) or not token.strip():
            raise ValueError("token cannot be empty")
        if mode != MODE_LEDGER and not is_valid_identity(token):
            raise ValueError(f"token must be a valid identity, got {token!r}")
        if isinstance(supply_cap, bool) or not isinstance(supply_cap, int) or not 0 <= supply_cap <= MAX_UINT128:
            raise ValueError(f"supply_cap must be an unsigned integer, got {supply_cap!r}")
        if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
            raise ValueError(f"decimals must be a non-negative integer, got {decimals!r}")

        staged = StagedStore(self.store)
        operation = "Instantiate"
        try:
            if staged.has(CONFIG_KEY):
                raise AlreadyExists("machine already instantiated")
            save_config(staged, Config(
                admin=ctx.sender,
                mode=mode,
                token=token,
                supply_cap=supply_cap,
                token_name=token_name,
                decimals=decimals,
            ))
            staged.put(CONTRACT_INFO_KEY, encode_record({
                "contract": CONTRACT_NAME,
                "version": CONTRACT_VERSION,
            }))
            pending = PendingTransition(
                operation=operation,
                sender=ctx.sender,
                timestamp=ctx.time,
                changes=staged.changes(),
                attributes=(("admin", ctx.sender), ("mode", mode), ("token", token)),
            )
            self._commit(pending)
        except VendingError as e:
            return self._reject(operation, e)
        return self._record(pending)

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def execute(self, ctx: Context, op: Operation) -> Outcome:
        """
        Apply one operation atomically.

        Args:
            ctx: Host context (sender, tendered funds, time)
            op: One of AddItem, Reprice, Restock, Purchase, Withdraw, Issue

        Returns:
            Outcome with result APPLIED and the committed Transition, or
            REJECTED and the VendingError; a rejected operation writes nothing.

        Raises:
            TypeError: If op is not one of the operation types
        """
        handler = _HANDLERS.get(type(op))
        if handler is None:
            raise TypeError(f"Unknown operation: {type(op).__name__}")

        operation = type(op).__name__
        staged = StagedStore(self.store)
        try:
            pending = handler(staged, ctx, op)
            self._validate_pending(pending)
            self._commit(pending)
        except VendingError as e:
            return self._reject(operation, e)
        return self._record(pending)

    def _validate_pending(self, pending: PendingTransition) -> None:
        """
        Check every buffered record against the state invariants.

        Checks performed:
        1. Catalog entries: 0 <= stock <= MAX_STOCK and price > 0
        2. Balances: 0 <= balance <= MAX_UINT128
        3. Config: admin unchanged, collected in range, and in ledger mode
           total_supply <= supply_cap

        Raises:
            InvariantViolation: On the first record that breaks an invariant
        """
        for change in pending.changes:
            record = decode_record(change.new_value)
            if change.key.startswith(CATALOG_PREFIX):
                name = name_from_key(change.key)
                stock, price = record.get("stock"), record.get("price")
                if not _is_uint(stock) or stock > MAX_STOCK:
                    raise InvariantViolation(f"{name}: stock {stock!r} outside 0..{MAX_STOCK}")
                if not _is_uint(price) or price == 0:
                    raise InvariantViolation(f"{name}: price {price!r} must be positive")
            elif change.key.startswith(BALANCE_PREFIX):
                if not _is_uint(record.get("balance")):
                    raise InvariantViolation(f"{change.key!r}: balance {record.get('balance')!r}")
            elif change.key == CONFIG_KEY:
                self._validate_config(change, record)

    @staticmethod
    def _validate_config(change: StateChange, record: Dict) -> None:
        if change.old_value is not None:
            old_admin = decode_record(change.old_value)["admin"]
            if record["admin"] != old_admin:
                raise InvariantViolation("admin cannot change")
        if not _is_uint(record["collected"]):
            raise InvariantViolation(f"collected {record['collected']!r}")
        if record["mode"] == MODE_LEDGER:
            if not _is_uint(record["total_supply"]) or record["total_supply"] > record["supply_cap"]:
                raise InvariantViolation(
                    f"total_supply {record['total_supply']!r} > cap {record['supply_cap']}"
                )

    def _commit(self, pending: PendingTransition) -> None:
        """
        Write every change to the store.

        If the store fails partway, the changes already written are restored
        from their old values in reverse order and StorageError is raised.
        """
        applied: List[StateChange] = []
        try:
            for change in pending.changes:
                self.store.put(change.key, change.new_value)
                applied.append(change)
        except Exception as e:
            try:
                for change in reversed(applied):
                    if change.old_value is None:
                        self.store.delete(change.key)
                    else:
                        self.store.put(change.key, change.old_value)
            except Exception as rollback_error:
                raise StorageError(
                    f"commit failed ({e}) and rollback failed ({rollback_error})"
                ) from rollback_error
            raise StorageError(f"commit failed: {type(e).__name__}: {e}") from e

    def _record(self, pending: PendingTransition) -> Outcome:
        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transition(
            operation=pending.operation,
            sender=pending.sender,
            timestamp=pending.timestamp,
            changes=pending.changes,
            attributes=pending.attributes,
            messages=pending.messages,
            exec_id=f"exec:{self.name}:{sequence:012d}",
            machine_name=self.name,
            sequence_number=sequence,
        )
        self.transition_log.append(tx)
        if self.verbose:
            self._print_result(tx, "APPLIED", "✓")
        return Outcome(result=ExecuteResult.APPLIED, operation=pending.operation, transition=tx)

    def _reject(self, operation: str, error: VendingError) -> Outcome:
        if self.verbose:
            print(f"✗ REJECTED: {operation}: {error}")
        return Outcome(result=ExecuteResult.REJECTED, operation=operation, error=error)

    def _print_result(self, tx: Transition, result: str, icon: str) -> None:
        """Print the boxed transition with a result line in place of the closing bar."""
        lines = repr(tx).split("\n")
        w = 100
        bar = "─" * w
        text = f" {icon} {result}"
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{text[:w].ljust(w)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def config(self) -> Config:
        return load_config(self.store)

    def get_item(self, name: str) -> Optional[Item]:
        return load_item(self.store, name)

    def list_items(self, cursor: Optional[str] = None, page_size: Optional[int] = None) -> Iterator[Item]:
        return query.list_items(self.store, cursor, page_size)

    def balance_of(self, identity: str) -> int:
        return query.query_balance(self.store, identity)

    def total_supply(self) -> int:
        return accounts_for(self.store, self.config).total_supply()


def _is_uint(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_UINT128
