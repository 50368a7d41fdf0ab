# workflows/payments.py
"""
Paid credit top-ups.

A top-up starts as a pending payment row whose id is handed to the
payment gateway (the QR or card session itself is created outside this
service). The gateway later calls the webhook with that id and a status:

- PAYMENT_COMPLETED grants the credits through the ledger and marks the
  payment confirmed
- a failure status marks it failed
- anything else is recorded and the payment stays pending

Confirmed and failed payments are final, so a webhook delivered twice
changes nothing the second time. The credit movement also carries the
reference `topup:{payment_id}`.
"""
import logging
from decimal import Decimal

import notifications
from config import CURRENCY
from errors import Conflict, InvalidRequest, NotFound, PermissionDenied
from ledger import apply_credit_change
from models.payment import (
    GATEWAY_COMPLETED,
    GATEWAY_FAILURES,
    SETTLED_PAYMENT_STATUSES,
    PaymentPurpose,
    PaymentStatus,
)
from models.transaction import Direction, TransactionType
from notifications import Notifier
from store import Store, new_id, utcnow

logger = logging.getLogger(__name__)


def topup_reference(payment_id: str) -> str:
    return f"topup:{payment_id}"


async def _insert_payment(store: Store, user_id: str, amount, credits: int, description: str) -> dict:
    now = utcnow()
    return await store.insert("payments", {
        "id": new_id(),
        "user_id": user_id,
        "purpose": PaymentPurpose.TOPUP.value,
        "amount": amount,
        "credits": credits,
        "currency": CURRENCY,
        "description": description,
        "status": PaymentStatus.PENDING.value,
        "gateway_status": None,
        "amount_paid": None,
        "transaction_id": None,
        "replaced_by": None,
        "failure_reason": None,
        "created_at": now,
        "updated_at": now,
        "confirmed_at": None,
    })


async def create_topup(store: Store, user_id: str, credits: int, amount=None, description: str = "") -> dict:
    """Open a pending top-up for `credits`; `amount` is the price, one per credit by default."""
    if not isinstance(credits, int) or isinstance(credits, bool) or credits <= 0:
        raise InvalidRequest("Credits must be a positive whole number")
    amount = Decimal(str(amount)) if amount is not None else Decimal(credits)
    if amount <= 0:
        raise InvalidRequest("Amount must be positive")
    if not await store.get("profiles", user_id):
        raise NotFound("Profile not found")

    payment = await _insert_payment(store, user_id, amount, credits, description or f"Top-up of {credits} credits")
    logger.info("Top-up %s opened by %s: %s credits for %s", payment["id"], user_id, credits, amount)
    return payment


async def get_payment(store: Store, user_id: str, payment_id: str) -> dict:
    payment = await store.get("payments", payment_id)
    if not payment:
        raise NotFound("Payment not found")
    if payment["user_id"] != user_id:
        raise PermissionDenied("You can only view your own payments")
    return payment


async def regenerate_payment(store: Store, user_id: str, payment_id: str) -> dict:
    """Replace a pending payment (e.g. an expired QR code) with a fresh one for the same top-up."""
    async with store.transaction():
        old = await store.get("payments", payment_id, for_update=True)
        if not old:
            raise NotFound("Payment not found")
        if old["user_id"] != user_id:
            raise PermissionDenied("You can only regenerate your own payments")
        if old["status"] != PaymentStatus.PENDING.value:
            raise Conflict(f"Payment is already {old['status']}")

        new = await _insert_payment(store, user_id, old["amount"], old["credits"], old["description"])
        await store.update(
            "payments", payment_id,
            status=PaymentStatus.EXPIRED.value,
            replaced_by=new["id"],
            updated_at=utcnow(),
        )

    logger.info("Payment %s replaced by %s", payment_id, new["id"])
    return new


async def handle_gateway_event(
    store: Store, notifier: Notifier, payment_id: str, status: str, amount_paid=None
) -> dict:
    """
    Apply one webhook call to the payment it names.

    Returns the payment, the ledger transaction when credits were granted,
    and `already_processed` for repeated deliveries.
    """
    note = None
    tx = None

    async with store.transaction():
        payment = await store.get("payments", payment_id, for_update=True)
        if not payment:
            raise NotFound("Payment not found")

        if payment["status"] in SETTLED_PAYMENT_STATUSES:
            logger.info("Payment %s already %s, ignoring %s", payment_id, payment["status"], status)
            return {"payment": payment, "transaction": None, "already_processed": True}

        now = utcnow()
        changes = {"gateway_status": status, "updated_at": now}
        if amount_paid is not None:
            changes["amount_paid"] = amount_paid

        # An expired payment that still gets paid is honoured
        if status == GATEWAY_COMPLETED:
            tx = await apply_credit_change(
                store,
                payment["user_id"],
                payment["credits"],
                direction=Direction.IN,
                tx_type=TransactionType.TOPUP_COMPLETED,
                description=payment["description"],
                reference=topup_reference(payment_id),
            )
            changes.update(status=PaymentStatus.CONFIRMED.value, transaction_id=tx["id"], confirmed_at=now)
        elif status in GATEWAY_FAILURES:
            changes.update(status=PaymentStatus.FAILED.value, failure_reason=status)

        payment = await store.update("payments", payment_id, **changes)
        if payment["status"] == PaymentStatus.CONFIRMED.value:
            note = notifications.topup_confirmed(payment)
        elif payment["status"] == PaymentStatus.FAILED.value:
            note = notifications.topup_failed(payment)

    logger.info("Payment %s: gateway %s -> %s", payment_id, status, payment["status"])
    if note:
        await notifier.deliver([note])
    return {"payment": payment, "transaction": tx, "already_processed": False}
