"""
Core types and pure helpers for the vending state machine.

This module provides the foundational data structures and protocols:
1. Protocols: StoreView / KeyValueStore for durable state, TokenTransfer for the
   external token ledger, AccountLedger for the two balance strategies
2. Immutable records: Item, Config, TokenInfo, Funds, Context, StateChange,
   TransferInstruction, PendingTransition, Transition, Outcome
3. Operations: AddItem, Reprice, Restock, Purchase, Withdraw, Issue
4. Exceptions: VendingError and one subclass per failure kind
5. Key layout and record codec

Nothing in this module writes to a store. Transition functions receive a
StagedStore, buffer their writes there, and hand a PendingTransition to the
machine, which validates and commits it.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import json
import re
from typing import (
    Dict, List, Optional, Any, Iterator, Protocol,
    Tuple, Union, runtime_checkable, TYPE_CHECKING
)

if TYPE_CHECKING:
    from .store import StagedStore


# ============================================================================
# CONSTANTS
# ============================================================================

CONTRACT_NAME = "vending"
CONTRACT_VERSION = "1.0.0"

# Maximum stock any catalog entry may hold.
MAX_STOCK = 50

# Query page sizes.
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 30

# Supply cap for the self-issued token when none is given at instantiation.
DEFAULT_SUPPLY_CAP = 10000

# Every stored quantity is an unsigned 128-bit integer.
MAX_UINT128 = 2 ** 128 - 1

# Ledger modes (strings, not enum, matching the unit type constants style).
MODE_AGGREGATED = "AGGREGATED"
MODE_LEDGER = "LEDGER"
MODES = frozenset({MODE_AGGREGATED, MODE_LEDGER})

# Reserved identity for the machine itself. Sales revenue is credited here.
MACHINE_ACCOUNT = "vending_machine"

# Kinds of tendered funds.
FUNDS_TOKEN = "TOKEN"
FUNDS_NATIVE = "NATIVE"

EPOCH = datetime(1970, 1, 1)


# ============================================================================
# KEY LAYOUT AND CODEC
# ============================================================================

CONFIG_KEY = b"config"
CONTRACT_INFO_KEY = b"contract_info"
CATALOG_PREFIX = b"catalog:"
BALANCE_PREFIX = b"balance:"


def _utf8(text: str, field_name: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError(f"{field_name} is not valid UTF-8 text: {text!r}") from None


def item_key(name: str) -> bytes:
    """Store key of a catalog entry. Byte order of keys is byte order of names."""
    return CATALOG_PREFIX + _utf8(name, "Item name")


def balance_key(identity: str) -> bytes:
    return BALANCE_PREFIX + _utf8(identity, "Identity")


def name_from_key(key: bytes) -> str:
    if not key.startswith(CATALOG_PREFIX):
        raise ValueError(f"Not a catalog key: {key!r}")
    return key[len(CATALOG_PREFIX):].decode("utf-8")


def encode_record(record: Dict[str, Any]) -> bytes:
    """
    Serialize a record to canonical bytes.

    Keys are sorted and separators are compact, so equal records always
    produce identical bytes.
    """
    return json.dumps(record, sort_keys=True, separators=(",", ":")).encode("utf-8")


def decode_record(raw: bytes) -> Dict[str, Any]:
    return json.loads(raw.decode("utf-8"))


# Lowercase identities, 3 to 90 characters.
_IDENTITY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.\-]{2,89}$")


def is_valid_identity(identity: Any) -> bool:
    """Return True if identity is a well-formed account identity."""
    return isinstance(identity, str) and bool(_IDENTITY_PATTERN.match(identity))


def _require_uint(value: Any, field_name: str) -> None:
    # bool is an int subclass but never a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{field_name} cannot be negative, got {value}")
    if value > MAX_UINT128:
        raise ValueError(f"{field_name} exceeds the 128-bit range")


def _require_text(value: Any, field_name: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{field_name} cannot be empty")
    _utf8(value, field_name)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class VendingError(Exception):
    """
    Base exception for all vending state machine errors.

    Every subclass carries a stable, human-readable message. An optional
    detail is appended after a colon.
    """
    message = "Vending error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class Unauthorized(VendingError):
    """Raised when the caller is not the administrator."""
    message = "Unauthorized"


class InvalidZeroPrice(VendingError):
    """Raised when an item is added with a zero price."""
    message = "Invalid zero price"


class InvalidZeroAmount(VendingError):
    """Raised when a quantity that must be positive is zero."""
    message = "Invalid zero amount"


class AmountTooBig(VendingError):
    message = f"Stock cannot be more than {MAX_STOCK}"


class AlreadyExists(VendingError):
    message = "Already exists"


class NotFound(VendingError):
    message = "Not found"


class OutOfStock(VendingError):
    message = "Out of stock"


class WrongToken(VendingError):
    """Raised when payment is denominated in an unexpected asset."""
    message = "Wrong token"


class NotEnoughFunds(VendingError):
    """Raised when a payment or balance is below the amount required."""
    message = "Not enough funds"

    def __init__(self, needed: int, given: int):
        self.needed = needed
        self.given = given
        super().__init__(f"needed {needed}, given {given}")


class CapExceeded(VendingError):
    message = "Issuance cannot exceed the supply cap"


class InvalidRecipient(VendingError):
    message = "Invalid recipient"


class StorageError(VendingError):
    """Raised when the underlying key-value store fails. Never retried."""
    message = "Storage error"


class Overflow(VendingError):
    message = "Arithmetic overflow"


class Unsupported(VendingError):
    """Raised when an operation does not exist in the configured ledger mode."""
    message = "Unsupported in this ledger mode"


class InvariantViolation(VendingError):
    """Raised when a buffered write would break a state invariant."""
    message = "State invariant violated"


class TransferError(VendingError):
    """Raised by a TokenTransfer collaborator when a transfer fails."""
    message = "Token transfer failed"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class StoreView(Protocol):
    """
    Read-only interface to an ordered byte-keyed store.

    Transition and query functions accepting a StoreView declare their
    read-only intent.
    """

    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value stored at key, or None."""
        ...

    def has(self, key: bytes) -> bool:
        ...

    def scan(self, start: bytes = b"") -> Iterator[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs with key > start in ascending byte order."""
        ...


@runtime_checkable
class KeyValueStore(StoreView, Protocol):
    """Durable ordered store. Only the machine's commit path calls put/delete."""

    def put(self, key: bytes, value: bytes) -> None:
        ...

    def delete(self, key: bytes) -> None:
        """Remove key. Used to roll back a partially applied commit."""
        ...


class TokenTransfer(Protocol):
    """External token ledger that executes deferred transfer instructions."""

    def transfer(self, from_identity: str, to_identity: str, amount: int) -> None:
        """Move amount between identities. Raises TransferError on failure."""
        ...


class AccountLedger(Protocol):
    """
    Balance strategy selected by Config.mode.

    Aggregated mode keeps one collected counter and leaves buyer balances to the
    external token ledger. Ledger mode keeps a balance per identity plus a total
    supply under a cap. Both write through the StagedStore they were built on.
    """

    def balance_of(self, identity: str) -> int:
        ...

    def total_supply(self) -> int:
        ...

    def debit(self, identity: str, amount: int) -> None:
        ...

    def credit(self, identity: str, amount: int) -> None:
        ...

    def available_funds(self, buyer: str, payment: Optional['Funds']) -> int:
        ...

    def collect_payment(
        self, buyer: str, price: int, payment: Optional['Funds']
    ) -> List['TransferInstruction']:
        ...

    def withdraw(self, amount: int) -> List['TransferInstruction']:
        ...

    def issue(self, recipient: str, amount: int) -> int:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of an operation.

    APPLIED: All checks passed and every write was committed.
    REJECTED: A check failed or the store failed; nothing was committed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# STATE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Item:
    """
    A catalog entry.

    Attributes:
        name: Unique catalog key.
        stock: Units available, between 0 and MAX_STOCK.
        price: Price of one unit in the configured token, always positive.
    """
    name: str
    stock: int
    price: int

    def to_record(self) -> Dict[str, Any]:
        return {"stock": self.stock, "price": self.price}

    @classmethod
    def from_record(cls, name: str, record: Dict[str, Any]) -> Item:
        return cls(name=name, stock=record["stock"], price=record["price"])


@dataclass(frozen=True, slots=True)
class Config:
    """
    Administrator and account configuration, loaded and saved around every operation.

    Attributes:
        admin: Identity allowed to manage the catalog, withdraw and issue.
        mode: MODE_AGGREGATED or MODE_LEDGER.
        token: Identity of the payment token (external token address, or the
            symbol of the self-issued token in ledger mode).
        collected: Revenue from sales not yet withdrawn.
        total_supply: Ledger mode only. Tokens in circulation.
        supply_cap: Ledger mode only. Upper bound for total_supply.
        token_name: Ledger mode only. Display name of the self-issued token.
        decimals: Ledger mode only. Display decimals of the self-issued token.
    """
    admin: str
    mode: str
    token: str
    collected: int = 0
    total_supply: int = 0
    supply_cap: int = DEFAULT_SUPPLY_CAP
    token_name: str = ""
    decimals: int = 0

    def to_record(self) -> Dict[str, Any]:
        return {
            "admin": self.admin,
            "mode": self.mode,
            "token": self.token,
            "collected": self.collected,
            "total_supply": self.total_supply,
            "supply_cap": self.supply_cap,
            "token_name": self.token_name,
            "decimals": self.decimals,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> Config:
        return cls(**record)


@dataclass(frozen=True, slots=True)
class TokenInfo:
    """Public description of the self-issued token."""
    name: str
    symbol: str
    decimals: int
    total_supply: int
    cap: int


@dataclass(frozen=True, slots=True)
class Funds:
    """
    Payment tendered with an operation.

    Attributes:
        denom: Identity of the asset (a token address, or a native coin denom).
        amount: Quantity tendered.
        kind: FUNDS_TOKEN for a token transfer, FUNDS_NATIVE for a native coin.
    """
    denom: str
    amount: int
    kind: str = FUNDS_TOKEN

    def __post_init__(self):
        _require_text(self.denom, "Funds denom")
        _require_uint(self.amount, "Funds amount")
        if self.kind not in (FUNDS_TOKEN, FUNDS_NATIVE):
            raise ValueError(f"Unknown funds kind: {self.kind}")


@dataclass(frozen=True, slots=True)
class Context:
    """
    Host context of one operation: who is calling, what they tendered, and when.
    """
    sender: str
    funds: Optional[Funds] = None
    time: datetime = EPOCH

    def __post_init__(self):
        _require_text(self.sender, "Context sender")


@dataclass(frozen=True, slots=True)
class StateChange:
    """
    One buffered write with the value it replaces.

    old_value is None when the key did not exist before the operation.
    Keeping the old value lets the machine roll back a partial commit.
    """
    key: bytes
    old_value: Optional[bytes]
    new_value: bytes

    def describe(self) -> str:
        key = self.key.decode("utf-8", errors="replace")
        return f"{key}: {_short(self.old_value)} → {_short(self.new_value)}"


def _short(value: Optional[bytes]) -> str:
    if value is None:
        return "∅"
    return value.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class TransferInstruction:
    """
    Deferred token transfer attached to an operation's outcome.

    The machine only authorizes and records the instruction; the host executes
    it against the token ledger with dispatch().
    """
    token: str
    sender: str
    recipient: str
    amount: int

    def dispatch(self, client: TokenTransfer) -> None:
        client.transfer(self.sender, self.recipient, self.amount)

    def __repr__(self) -> str:
        return f"Transfer({self.amount} {self.token}: {self.sender}→{self.recipient})"


# ============================================================================
# OPERATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class AddItem:
    """Add a new catalog entry. Admin only."""
    name: str
    stock: int
    price: int

    def __post_init__(self):
        _require_text(self.name, "Item name")
        _require_uint(self.stock, "stock")
        _require_uint(self.price, "price")


@dataclass(frozen=True, slots=True)
class Reprice:
    """Overwrite the price of an existing entry. Admin only."""
    name: str
    price: int

    def __post_init__(self):
        _require_text(self.name, "Item name")
        _require_uint(self.price, "price")


@dataclass(frozen=True, slots=True)
class Restock:
    """Add amount units to an existing entry. Admin only."""
    name: str
    amount: int

    def __post_init__(self):
        _require_text(self.name, "Item name")
        _require_uint(self.amount, "amount")


@dataclass(frozen=True, slots=True)
class Purchase:
    """Buy exactly one unit. Payment comes from Context.funds or the buyer's balance."""
    name: str

    def __post_init__(self):
        _require_text(self.name, "Item name")


@dataclass(frozen=True, slots=True)
class Withdraw:
    """Withdraw collected revenue. Admin only."""
    amount: int

    def __post_init__(self):
        _require_uint(self.amount, "amount")


@dataclass(frozen=True, slots=True)
class Issue:
    """Issue self-issued tokens to a recipient. Admin only, ledger mode only."""
    recipient: str
    amount: int

    def __post_init__(self):
        if not isinstance(self.recipient, str):
            raise ValueError("recipient must be a string")
        _require_uint(self.amount, "amount")


Operation = Union[AddItem, Reprice, Restock, Purchase, Withdraw, Issue]

OPERATION_TYPES: Tuple[type, ...] = (AddItem, Reprice, Restock, Purchase, Withdraw, Issue)


# ============================================================================
# TRANSITIONS
# ============================================================================

Attributes = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class PendingTransition:
    """
    The result of a transition function before commit - represents INTENT.

    Attributes:
        operation: Name of the operation type (e.g. "Purchase")
        sender: Identity that submitted the operation
        timestamp: Host time of the operation
        changes: Buffered writes, in the order they were made
        attributes: Success attributes as (key, value) string pairs
        messages: Deferred transfer instructions
    """
    operation: str
    sender: str
    timestamp: datetime
    changes: Tuple[StateChange, ...]
    attributes: Attributes = ()
    messages: Tuple[TransferInstruction, ...] = ()

    def is_empty(self) -> bool:
        return not self.changes and not self.messages

    def __repr__(self) -> str:
        return f"PendingTransition({self.operation}, {len(self.changes)} changes, {len(self.messages)} messages)"


def build_transition(
    staged: 'StagedStore',
    ctx: Context,
    operation: Operation,
    attributes: Optional[List[Tuple[str, Any]]] = None,
    messages: Optional[List[TransferInstruction]] = None,
) -> PendingTransition:
    """
    Build a PendingTransition from the writes buffered in staged.

    This is the standard way for a transition function to return.

    Example:
        def compute_reprice(staged, ctx, op):
            item = require_item(staged, op.name)
            save_item(staged, replace(item, price=op.price))
            return build_transition(staged, ctx, op, [("name", op.name), ("price", op.price)])
    """
    return PendingTransition(
        operation=type(operation).__name__,
        sender=ctx.sender,
        timestamp=ctx.time,
        changes=staged.changes(),
        attributes=tuple((key, str(value)) for key, value in (attributes or [])),
        messages=tuple(messages or ()),
    )


@dataclass(frozen=True, slots=True)
class Transition:
    """
    A committed, immutable record of one operation - represents FACT.

    Attributes:
        operation: Name of the operation type
        sender: Identity that submitted the operation
        timestamp: Host time of the operation
        changes: Writes that were committed
        attributes: Success attributes
        messages: Deferred transfer instructions
        exec_id: Unique execution identifier (machine name + sequence)
        machine_name: Name of the machine that committed this
        sequence_number: Monotonic sequence within the machine
    """
    operation: str
    sender: str
    timestamp: datetime
    changes: Tuple[StateChange, ...]
    attributes: Attributes
    messages: Tuple[TransferInstruction, ...]
    exec_id: str
    machine_name: str
    sequence_number: int

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transition: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   operation : ' + self.operation)}│",
            f"│{pad('   sender    : ' + self.sender)}│",
            f"│{pad('   timestamp : ' + str(self.timestamp))}│",
            f"│{pad('   sequence  : ' + str(self.sequence_number))}│",
        ]
        if self.attributes:
            attrs = ", ".join(f"{k}={v}" for k, v in self.attributes)
            lines.append(f"│{pad('   attributes: ' + attrs)}│")
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Changes (' + str(len(self.changes)) + '):')}│")
        for i, change in enumerate(self.changes):
            lines.append(f"│{pad(f'   [{i}] ' + change.describe())}│")
        if self.messages:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Messages (' + str(len(self.messages)) + '):')}│")
            for message in self.messages:
                lines.append(f"│{pad('   ' + repr(message))}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class Outcome:
    """
    What the caller gets back from VendingMachine.execute().

    Exactly one of transition and error is set.
    """
    result: ExecuteResult
    operation: str
    transition: Optional[Transition] = None
    error: Optional[VendingError] = None

    @property
    def ok(self) -> bool:
        return self.result == ExecuteResult.APPLIED

    @property
    def attributes(self) -> Dict[str, str]:
        if self.transition is None:
            return {}
        return dict(self.transition.attributes)

    @property
    def messages(self) -> Tuple[TransferInstruction, ...]:
        if self.transition is None:
            return ()
        return self.transition.messages

    def unwrap(self) -> Outcome:
        """Return self if applied, otherwise raise the error."""
        if self.error is not None:
            raise self.error
        return self
