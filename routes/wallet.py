# routes/wallet.py
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from db import get_store
from errors import PermissionDenied
from models.transaction import TransactionType
from models.user import Role, has_role
from routes.auth import get_current_user
from routes.common import ActionBody, get_notifier, ok, parse_payload, unknown_action
from workflows import wallet

router = APIRouter(tags=["wallet"])


class TransactionFilter(BaseModel):
    type: TransactionType | None = None
    limit: int = Field(default=100, ge=1, le=500)


class WithdrawRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    source: Literal["credit", "total_earned", "all"] = "total_earned"
    account_name: str = Field(min_length=1)
    account_number: str = Field(min_length=1)


class TopUp(BaseModel):
    user_id: str
    amount: int = Field(gt=0)
    note: str = ""


@router.post("/wallet")
async def wallet_actions(
    body: ActionBody,
    user: dict = Depends(get_current_user),
    store=Depends(get_store),
    notifier=Depends(get_notifier),
):
    action = body.action

    if action == "get-balance":
        return ok(await wallet.get_balance(store, user["id"]))

    if action == "get-transactions":
        data = parse_payload(TransactionFilter, body)
        tx_type = data.type.value if data.type else None
        return ok(await wallet.list_transactions(store, user["id"], tx_type, data.limit))

    if action == "request-withdraw":
        data = parse_payload(WithdrawRequest, body)
        tx = await wallet.request_withdrawal(
            store,
            notifier,
            user["id"],
            data.amount,
            source=data.source,
            account_name=data.account_name,
            account_number=data.account_number,
        )
        return ok(tx)

    if action == "top-up":
        if not has_role(user, Role.ADMIN.value):
            raise PermissionDenied("Access denied: admin role required")
        data = parse_payload(TopUp, body)
        return ok(await wallet.top_up(store, data.user_id, data.amount, note=data.note))

    unknown_action(action)
