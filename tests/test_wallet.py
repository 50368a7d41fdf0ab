"""Tests for balances, withdrawals and top-ups."""
from decimal import Decimal

import pytest

from errors import InsufficientCredits, InvalidRequest
from tests.helpers import add_profile, run
from workflows import wallet


@pytest.fixture
def earner(store):
    run(add_profile(store, "eve", credit=3000, total_earned=Decimal("10000")))
    return "eve"


def withdraw(store, notifier, uid, amount, source):
    return run(wallet.request_withdrawal(
        store, notifier, uid, amount,
        source=source, account_name="Eve", account_number="0101-22",
    ))


class TestWithdrawal:
    def test_from_earnings(self, store, notifier, earner):
        tx = withdraw(store, notifier, earner, Decimal("4000"), "total_earned")

        eve = run(store.get("profiles", earner))
        assert eve["total_earned"] == Decimal("6000")
        assert eve["credit"] == 3000
        assert tx["type"] == "withdraw_request"
        assert tx["status"] == "pending"
        assert tx["source"] == "total_earned"
        assert tx["account_number"] == "0101-22"
        assert tx["previous_balance"] == Decimal("10000")
        assert tx["new_balance"] == Decimal("6000")

    def test_from_credit(self, store, notifier, earner):
        withdraw(store, notifier, earner, 1000, "credit")
        assert run(store.get("profiles", earner))["credit"] == 2000

    def test_all_spends_credit_first(self, store, notifier, earner):
        withdraw(store, notifier, earner, Decimal("5000"), "all")

        eve = run(store.get("profiles", earner))
        assert eve["credit"] == 0
        assert eve["total_earned"] == Decimal("8000")
        assert run(store.count("transactions", type="withdraw_request")) == 1

    def test_more_than_available(self, store, notifier, earner):
        with pytest.raises(InsufficientCredits):
            withdraw(store, notifier, earner, 3001, "credit")
        assert run(store.get("profiles", earner))["credit"] == 3000
        assert run(store.count("transactions")) == 0

    @pytest.mark.parametrize("source, amount", [("credit", Decimal("10.5")), ("all", Decimal("2999.5"))])
    def test_fractional_credits_rejected(self, store, notifier, earner, source, amount):
        with pytest.raises(InvalidRequest):
            withdraw(store, notifier, earner, amount, source)

        eve = run(store.get("profiles", earner))
        assert eve["credit"] == 3000
        assert eve["total_earned"] == Decimal("10000")
        assert run(store.count("transactions")) == 0

    def test_fraction_taken_from_earnings(self, store, notifier, earner):
        tx = withdraw(store, notifier, earner, Decimal("3000.5"), "all")

        eve = run(store.get("profiles", earner))
        assert eve["credit"] == 0
        assert isinstance(eve["credit"], int)
        assert eve["total_earned"] == Decimal("9999.5")
        assert tx["amount"] == Decimal("3000.5")

    def test_bad_source(self, store, notifier, earner):
        with pytest.raises(InvalidRequest):
            withdraw(store, notifier, earner, 10, "savings")

    def test_notifies_user(self, store, notifier, earner):
        withdraw(store, notifier, earner, 100, "credit")
        note = run(store.find_one("notifications", user_id=earner))
        assert note["type"] == "withdraw_requested"


class TestBalanceAndHistory:
    def test_top_up_and_balance(self, store, earner):
        tx = run(wallet.top_up(store, earner, 7000))

        assert tx["type"] == "topup_completed"
        balance = run(wallet.get_balance(store, earner))
        assert balance["credit"] == 10000
        assert balance["currency"] == "LAK"

    def test_history_newest_first_and_filtered(self, store, notifier, earner):
        run(wallet.top_up(store, earner, 500))
        withdraw(store, notifier, earner, 100, "credit")

        history = run(wallet.list_transactions(store, earner))
        assert [t["type"] for t in history] == ["withdraw_request", "topup_completed"]

        only_topups = run(wallet.list_transactions(store, earner, "topup_completed"))
        assert len(only_topups) == 1
