"""Tests for the credit ledger and transaction log."""
import pytest

from errors import InsufficientCredits, InvalidRequest, NotFound
from ledger import apply_credit_change, refund_reference
from models.transaction import Direction, TransactionType
from tests.helpers import add_profile, run


def _move(store, uid, amount, direction, tx_type=TransactionType.TOPUP_COMPLETED, **kwargs):
    async def go():
        async with store.transaction():
            return await apply_credit_change(
                store, uid, amount,
                direction=direction,
                tx_type=tx_type,
                description="test movement",
                **kwargs,
            )
    return run(go())


class TestApplyCreditChange:
    def test_credit_in_updates_balance_and_logs(self, store):
        run(add_profile(store, "u1", credit=100))
        tx = _move(store, "u1", 50, Direction.IN)

        assert run(store.get("profiles", "u1"))["credit"] == 150
        assert tx["previous_balance"] == 100
        assert tx["new_balance"] == 150
        assert tx["direction"] == "in"
        assert tx["type"] == "topup_completed"
        assert tx["status"] == "completed"
        assert run(store.count("transactions", user_id="u1")) == 1

    def test_debit_out(self, store):
        run(add_profile(store, "u1", credit=100))
        tx = _move(store, "u1", 30, Direction.OUT, tx_type=TransactionType.PROPOSAL_FEE)

        assert run(store.get("profiles", "u1"))["credit"] == 70
        assert tx["new_balance"] == 70

    def test_insufficient_credit_changes_nothing(self, store):
        run(add_profile(store, "u1", credit=10))

        with pytest.raises(InsufficientCredits) as exc:
            _move(store, "u1", 11, Direction.OUT)

        assert exc.value.required == 11
        assert exc.value.available == 10
        assert run(store.get("profiles", "u1"))["credit"] == 10
        assert run(store.count("transactions")) == 0

    def test_reference_makes_movement_idempotent(self, store):
        run(add_profile(store, "u1", credit=0))
        ref = refund_reference("p1")

        first = _move(store, "u1", 500, Direction.IN, tx_type=TransactionType.PROPOSAL_REFUND, reference=ref)
        second = _move(store, "u1", 500, Direction.IN, tx_type=TransactionType.PROPOSAL_REFUND, reference=ref)

        assert first["id"] == second["id"]
        assert run(store.get("profiles", "u1"))["credit"] == 500
        assert run(store.count("transactions", reference=ref)) == 1

    def test_other_balance_field(self, store):
        run(add_profile(store, "u1"))
        _move(store, "u1", 1200, Direction.IN, tx_type=TransactionType.ESCROW_RELEASE, balance_field="total_earned")

        profile = run(store.get("profiles", "u1"))
        assert profile["total_earned"] == 1200
        assert profile["credit"] == 0

    @pytest.mark.parametrize("amount", [0, -5, None])
    def test_amount_must_be_positive(self, store, amount):
        run(add_profile(store, "u1", credit=10))
        with pytest.raises(InvalidRequest):
            _move(store, "u1", amount, Direction.IN)

    def test_unknown_profile(self, store):
        with pytest.raises(NotFound):
            _move(store, "ghost", 5, Direction.IN)


def test_refund_reference_format():
    assert refund_reference("abc") == "proposal_refund:abc"
