"""
test_core_types.py - Unit tests for core data structures

Tests:
- Operations: validation, immutability
- Funds and Context: validation
- Records: Item / Config codec
- Exceptions: messages and kinds
- Identity validation
- Outcome: ok, attributes, unwrap
"""

import pytest
from datetime import datetime

from vending import (
    AddItem, Reprice, Restock, Purchase, Withdraw, Issue,
    Item, Config, Funds, Context, StateChange, TransferInstruction,
    Outcome, ExecuteResult,
    VendingError, Unauthorized, NotEnoughFunds, AmountTooBig, NotFound,
    MAX_UINT128, MODE_LEDGER, FUNDS_NATIVE, is_valid_identity,
)
from vending.core import item_key, name_from_key, encode_record, decode_record

from tests.fake_token import FakeTokenLedger


class TestOperationValidation:
    """Operation records validate their own fields."""

    def test_valid_add_item(self):
        op = AddItem("Americano", stock=3, price=2)
        assert op.name == "Americano"
        assert op.stock == 3
        assert op.price == 2

    def test_empty_name_raises(self):
        with pytest.raises(ValueError, match="Item name cannot be empty"):
            AddItem("", stock=1, price=1)

    def test_whitespace_name_is_a_name(self):
        assert Purchase("   ").name == "   "
        assert item_key(" Latte") != item_key("Latte")

    def test_surrogate_name_raises(self):
        with pytest.raises(ValueError, match="UTF-8"):
            AddItem("\ud800", stock=1, price=1)

    def test_surrogate_sender_raises(self):
        with pytest.raises(ValueError, match="UTF-8"):
            Context("\udfff")

    def test_negative_quantity_raises(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            Restock("Americano", -1)

    def test_bool_quantity_raises(self):
        """bool is an int subclass but is never a quantity."""
        with pytest.raises(ValueError, match="must be an integer"):
            Withdraw(True)

    def test_float_quantity_raises(self):
        with pytest.raises(ValueError, match="must be an integer"):
            Reprice("Americano", 2.5)

    def test_quantity_above_uint128_raises(self):
        with pytest.raises(ValueError, match="128-bit"):
            Issue("alice", MAX_UINT128 + 1)

    def test_max_uint128_accepted(self):
        assert Issue("alice", MAX_UINT128).amount == MAX_UINT128

    def test_zero_quantities_are_constructible(self):
        """Zero is rejected by the transition, not by the record."""
        assert AddItem("Americano", stock=0, price=0).price == 0
        assert Withdraw(0).amount == 0

    def test_issue_recipient_must_be_string(self):
        with pytest.raises(ValueError, match="recipient"):
            Issue(None, 1)

    def test_operations_are_immutable(self):
        op = Purchase("Americano")
        with pytest.raises(AttributeError):
            op.name = "Latte"

    def test_operations_compare_by_value(self):
        assert Restock("Americano", 2) == Restock("Americano", 2)


class TestFundsAndContext:

    def test_funds_default_to_token(self):
        funds = Funds("coffee_token", 5)
        assert funds.kind == "TOKEN"

    def test_native_funds(self):
        assert Funds("uatom", 5, kind=FUNDS_NATIVE).kind == FUNDS_NATIVE

    def test_unknown_funds_kind_raises(self):
        with pytest.raises(ValueError, match="Unknown funds kind"):
            Funds("uatom", 5, kind="IOU")

    def test_negative_funds_raise(self):
        with pytest.raises(ValueError):
            Funds("coffee_token", -5)

    def test_context_requires_sender(self):
        with pytest.raises(ValueError, match="sender"):
            Context("")

    def test_context_defaults(self):
        c = Context("alice")
        assert c.funds is None
        assert c.time == datetime(1970, 1, 1)


class TestRecordCodec:

    def test_item_round_trip(self):
        item = Item("Americano", stock=3, price=2)
        assert Item.from_record("Americano", item.to_record()) == item

    def test_encoding_is_canonical(self):
        """Equal records produce identical bytes regardless of key order."""
        assert encode_record({"b": 1, "a": 2}) == encode_record({"a": 2, "b": 1})
        assert encode_record({"stock": 3, "price": 2}) == b'{"price":2,"stock":3}'

    def test_large_integers_survive(self):
        assert decode_record(encode_record({"balance": MAX_UINT128}))["balance"] == MAX_UINT128

    def test_config_round_trip(self):
        config = Config("admin", MODE_LEDGER, "COFFEE", collected=3, total_supply=10)
        assert Config.from_record(decode_record(encode_record(config.to_record()))) == config

    def test_item_key_orders_by_name_bytes(self):
        assert item_key("Americano") < item_key("Latte")
        assert name_from_key(item_key("Café")) == "Café"

    def test_name_from_foreign_key_raises(self):
        with pytest.raises(ValueError, match="Not a catalog key"):
            name_from_key(b"config")


class TestExceptions:

    def test_message_without_detail(self):
        assert str(Unauthorized()) == "Unauthorized"

    def test_message_with_detail(self):
        assert str(NotFound("Mocha")) == "Not found: Mocha"

    def test_not_enough_funds_reports_amounts(self):
        err = NotEnoughFunds(needed=3, given=1)
        assert err.needed == 3
        assert err.given == 1
        assert str(err) == "Not enough funds: needed 3, given 1"

    def test_amount_too_big_names_the_limit(self):
        assert "50" in str(AmountTooBig())

    def test_kind_is_class_name(self):
        assert NotFound().kind == "NotFound"

    def test_all_errors_share_base(self):
        assert isinstance(Unauthorized(), VendingError)


class TestIdentity:

    @pytest.mark.parametrize("identity", ["alice", "bob", "cosmos1abc", "a.b-c_d"])
    def test_valid_identities(self, identity):
        assert is_valid_identity(identity)

    @pytest.mark.parametrize("identity", ["", "ab", "Alice", "-alice", "al ice", "a" * 91, None, 42])
    def test_invalid_identities(self, identity):
        assert not is_valid_identity(identity)


class TestStateChangeAndTransfer:

    def test_describe_new_key(self):
        change = StateChange(b"catalog:Americano", None, b'{"price":2,"stock":3}')
        assert change.describe() == 'catalog:Americano: ∅ → {"price":2,"stock":3}'

    def test_transfer_dispatch(self):
        tokens = FakeTokenLedger({"vending_machine": 5})
        TransferInstruction("coffee_token", "vending_machine", "admin", 2).dispatch(tokens)
        assert tokens.balance("admin") == 2
        assert tokens.balance("vending_machine") == 3


class TestOutcome:

    def test_rejected_outcome(self):
        outcome = Outcome(ExecuteResult.REJECTED, "Purchase", error=NotFound("Mocha"))
        assert not outcome.ok
        assert outcome.attributes == {}
        assert outcome.messages == ()

    def test_unwrap_raises_error(self):
        outcome = Outcome(ExecuteResult.REJECTED, "Purchase", error=NotFound("Mocha"))
        with pytest.raises(NotFound, match="Mocha"):
            outcome.unwrap()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
