# workflows/wallet.py
import logging
from decimal import Decimal

import notifications
from config import CURRENCY
from errors import InsufficientCredits, InvalidRequest, NotFound
from ledger import apply_credit_change, record_transaction
from models.transaction import Direction, TransactionStatus, TransactionType
from notifications import Notifier
from store import Store, utcnow

logger = logging.getLogger(__name__)

WITHDRAW_SOURCES = ("credit", "total_earned", "all")


async def get_balance(store: Store, user_id: str) -> dict:
    profile = await store.get("profiles", user_id)
    if not profile:
        raise NotFound("Profile not found")
    return {
        "credit": profile.get("credit") or 0,
        "total_earned": profile.get("total_earned") or 0,
        "total_spent": profile.get("total_spent") or 0,
        "currency": CURRENCY,
    }


async def list_transactions(
    store: Store, user_id: str, tx_type: str | None = None, limit: int = 100
) -> list[dict]:
    filters = {"user_id": user_id}
    if tx_type:
        filters["type"] = TransactionType(tx_type).value
    return await store.find("transactions", order_by="created_at", descending=True, limit=limit, **filters)


async def request_withdrawal(
    store: Store,
    notifier: Notifier,
    user_id: str,
    amount,
    *,
    source: str = "total_earned",
    account_name: str,
    account_number: str,
) -> dict:
    """
    Take `amount` out of the chosen balance and log a pending withdrawal.

    `all` spends credit first and takes the rest from total_earned. Credits
    are whole numbers, so the part taken from credit must be one. The
    payout itself happens outside the service, so the transaction stays
    pending.
    """
    if source not in WITHDRAW_SOURCES:
        raise InvalidRequest(f"Unknown withdrawal source: {source}")
    if amount is None or Decimal(str(amount)) <= 0:
        raise InvalidRequest("Amount must be positive")
    amount = Decimal(str(amount))
    if not account_name or not account_number:
        raise InvalidRequest("Bank account name and number are required")

    async with store.transaction():
        profile = await store.get("profiles", user_id, for_update=True)
        if not profile:
            raise NotFound("Profile not found")

        credit = profile.get("credit") or 0
        earned = profile.get("total_earned") or 0
        available = {"credit": credit, "total_earned": earned, "all": credit + earned}[source]
        if amount > available:
            raise InsufficientCredits(amount, available)

        if source == "credit":
            from_credit, from_earned = amount, 0
        elif source == "total_earned":
            from_credit, from_earned = Decimal(0), amount
        else:
            from_credit = Decimal(min(credit, amount))
            from_earned = amount - from_credit

        if from_credit != from_credit.to_integral_value():
            raise InvalidRequest("Credits can only be withdrawn in whole units")

        await store.update(
            "profiles", user_id,
            credit=credit - int(from_credit),
            total_earned=earned - from_earned,
            updated_at=utcnow(),
        )
        tx = await record_transaction(
            store,
            user_id=user_id,
            tx_type=TransactionType.WITHDRAW_REQUEST,
            direction=Direction.OUT,
            amount=amount,
            previous_balance=available,
            new_balance=available - amount,
            description=f"Withdrawal of {amount} from {source.replace('_', ' ')}",
            status=TransactionStatus.PENDING,
            source=source,
            account_name=account_name,
            account_number=account_number,
        )

    logger.info("Withdrawal %s requested by %s: %s from %s", tx["id"], user_id, amount, source)
    await notifier.deliver([notifications.withdraw_requested(user_id, amount, source)])
    return tx


async def top_up(store: Store, user_id: str, amount, *, note: str = "") -> dict:
    """Admin credit grant, e.g. after a confirmed bank transfer."""
    async with store.transaction():
        return await apply_credit_change(
            store,
            user_id,
            amount,
            direction=Direction.IN,
            tx_type=TransactionType.TOPUP_COMPLETED,
            description=note or f"Top-up of {amount} credits",
        )
