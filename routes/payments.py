# routes/payments.py
import hmac
from decimal import Decimal

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from config import PAYMENT_WEBHOOK_SECRET
from db import get_store
from errors import PermissionDenied, Unauthorized
from routes.auth import get_current_user
from routes.common import ActionBody, get_notifier, ok, parse_payload, unknown_action
from workflows import payments

router = APIRouter(tags=["payment"])


class CreateTopUp(BaseModel):
    credits: int = Field(gt=0)
    amount: Decimal | None = Field(default=None, gt=0)
    description: str = ""


class PaymentRef(BaseModel):
    payment_id: str


class GatewayEvent(BaseModel):
    transaction_id: str
    status: str
    amount_paid: Decimal | None = None


@router.post("/payment")
async def payment_actions(body: ActionBody, user: dict = Depends(get_current_user), store=Depends(get_store)):
    if body.action == "create-topup":
        data = parse_payload(CreateTopUp, body)
        return ok(await payments.create_topup(store, user["id"], data.credits, data.amount, data.description))

    if body.action == "get-payment":
        data = parse_payload(PaymentRef, body)
        return ok(await payments.get_payment(store, user["id"], data.payment_id))

    if body.action == "regenerate":
        data = parse_payload(PaymentRef, body)
        return ok(await payments.regenerate_payment(store, user["id"], data.payment_id))

    unknown_action(body.action)


@router.post("/payment/webhook")
async def payment_webhook(
    event: GatewayEvent,
    x_webhook_secret: str | None = Header(None),
    store=Depends(get_store),
    notifier=Depends(get_notifier),
):
    """Called by the gateway; `transaction_id` is the payment id we issued."""
    if not PAYMENT_WEBHOOK_SECRET:
        raise PermissionDenied("Payment webhook is not configured")
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, PAYMENT_WEBHOOK_SECRET):
        raise Unauthorized("Invalid webhook secret")

    result = await payments.handle_gateway_event(
        store, notifier, event.transaction_id, event.status, event.amount_paid
    )
    return ok(result)
