"""Tests for paid top-ups and the gateway webhook."""
import asyncio
from decimal import Decimal

import pytest

from errors import Conflict, InvalidRequest, NotFound, PermissionDenied
from tests.helpers import add_profile, run
from tests.memory_store import InjectedFailure
from workflows import payments


@pytest.fixture
def buyer(store):
    run(add_profile(store, "bea", credit=200))
    return "bea"


def credit(store, uid):
    return run(store.get("profiles", uid))["credit"]


def gateway(store, notifier, payment_id, status="PAYMENT_COMPLETED", amount_paid=None):
    return run(payments.handle_gateway_event(store, notifier, payment_id, status, amount_paid))


class TestCreateTopUp:
    def test_opens_pending_payment(self, store, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))

        assert payment["status"] == "pending"
        assert payment["credits"] == 1000
        assert payment["amount"] == Decimal("1000")
        assert payment["currency"] == "LAK"
        assert credit(store, buyer) == 200
        assert run(store.count("transactions")) == 0

    def test_custom_price(self, store, buyer):
        payment = run(payments.create_topup(store, buyer, 1000, Decimal("950")))
        assert payment["amount"] == Decimal("950")

    @pytest.mark.parametrize("credits", [0, -5, 1.5, True])
    def test_credits_must_be_whole_and_positive(self, store, buyer, credits):
        with pytest.raises(InvalidRequest):
            run(payments.create_topup(store, buyer, credits))

    def test_unknown_user(self, store):
        with pytest.raises(NotFound):
            run(payments.create_topup(store, "ghost", 10))


class TestGatewayEvents:
    def test_completed_grants_credits(self, store, notifier, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))

        result = gateway(store, notifier, payment["id"], amount_paid=Decimal("1000"))

        assert result["already_processed"] is False
        assert result["payment"]["status"] == "confirmed"
        assert result["payment"]["confirmed_at"] is not None
        assert result["payment"]["amount_paid"] == Decimal("1000")
        assert result["payment"]["transaction_id"] == result["transaction"]["id"]
        assert result["transaction"]["type"] == "topup_completed"
        assert result["transaction"]["reference"] == f"topup:{payment['id']}"
        assert credit(store, buyer) == 1200
        assert run(store.count("notifications", user_id=buyer, type="topup_confirmed")) == 1

    def test_duplicate_webhook_credits_once(self, store, notifier, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))
        gateway(store, notifier, payment["id"])

        again = gateway(store, notifier, payment["id"])

        assert again["already_processed"] is True
        assert again["transaction"] is None
        assert credit(store, buyer) == 1200
        assert run(store.count("transactions", type="topup_completed")) == 1

    def test_concurrent_webhooks_credit_once(self, store, notifier, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))

        async def burst():
            return await asyncio.gather(*(
                payments.handle_gateway_event(store, notifier, payment["id"], "PAYMENT_COMPLETED")
                for _ in range(3)
            ))

        results = run(burst())

        assert sorted(r["already_processed"] for r in results) == [False, True, True]
        assert credit(store, buyer) == 1200

    def test_failure_is_final(self, store, notifier, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))

        failed = gateway(store, notifier, payment["id"], "PAYMENT_FAILED")
        assert failed["payment"]["status"] == "failed"
        assert failed["payment"]["failure_reason"] == "PAYMENT_FAILED"
        assert run(store.count("notifications", type="topup_failed")) == 1

        late = gateway(store, notifier, payment["id"])
        assert late["already_processed"] is True
        assert credit(store, buyer) == 200

    def test_interim_status_keeps_payment_pending(self, store, notifier, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))

        result = gateway(store, notifier, payment["id"], "PAYMENT_PROCESSING")

        assert result["payment"]["status"] == "pending"
        assert result["payment"]["gateway_status"] == "PAYMENT_PROCESSING"
        assert credit(store, buyer) == 200
        assert run(store.count("notifications")) == 0

    def test_ledger_failure_leaves_payment_pending(self, store, notifier, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))
        store.fail_on.add(("insert", "transactions"))

        with pytest.raises(InjectedFailure):
            gateway(store, notifier, payment["id"])

        assert run(store.get("payments", payment["id"]))["status"] == "pending"
        assert credit(store, buyer) == 200

    def test_unknown_payment(self, store, notifier):
        with pytest.raises(NotFound):
            gateway(store, notifier, "missing")


class TestRegenerate:
    def test_replaces_pending_payment(self, store, buyer):
        old = run(payments.create_topup(store, buyer, 1000, Decimal("990")))

        new = run(payments.regenerate_payment(store, buyer, old["id"]))

        assert new["id"] != old["id"]
        assert new["status"] == "pending"
        assert new["amount"] == Decimal("990")
        expired = run(store.get("payments", old["id"]))
        assert expired["status"] == "expired"
        assert expired["replaced_by"] == new["id"]

    def test_paid_after_expiry_still_credits(self, store, notifier, buyer):
        old = run(payments.create_topup(store, buyer, 1000))
        run(payments.regenerate_payment(store, buyer, old["id"]))

        gateway(store, notifier, old["id"])

        assert credit(store, buyer) == 1200

    def test_confirmed_payment_cannot_be_regenerated(self, store, notifier, buyer):
        payment = run(payments.create_topup(store, buyer, 1000))
        gateway(store, notifier, payment["id"])

        with pytest.raises(Conflict):
            run(payments.regenerate_payment(store, buyer, payment["id"]))

    def test_owner_only(self, store, buyer):
        run(add_profile(store, "mallory"))
        payment = run(payments.create_topup(store, buyer, 1000))

        with pytest.raises(PermissionDenied):
            run(payments.regenerate_payment(store, "mallory", payment["id"]))
