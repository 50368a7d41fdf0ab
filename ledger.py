# ledger.py
"""
Profile credit ledger and transaction log.

Every balance change goes through `apply_credit_change`, which locks the
profile row, moves the balance and appends exactly one transaction row in
the same database transaction. Callers must already be inside
`store.transaction()`.

A `reference` makes a movement idempotent: if a transaction with that
reference exists, it is returned and nothing is moved again. Refunds use
`proposal_refund:{proposal_id}`, so accepting or rejecting twice can never
refund twice.
"""
import logging

from config import CURRENCY
from errors import InsufficientCredits, InvalidRequest, NotFound
from models.transaction import BALANCE_FIELDS, Direction, TransactionStatus, TransactionType
from store import Store, utcnow

logger = logging.getLogger(__name__)


def refund_reference(proposal_id: str) -> str:
    return f"proposal_refund:{proposal_id}"


async def lock_profiles(store: Store, user_ids) -> dict[str, dict]:
    """
    Lock several profile rows in id order.

    Any workflow that moves money between two or more users takes its
    profile locks through here first, so two of them touching the same
    users always queue instead of deadlocking.
    """
    locked = {}
    for user_id in sorted({u for u in user_ids if u}):
        locked[user_id] = await store.get("profiles", user_id, for_update=True)
    return locked


async def record_transaction(
    store: Store,
    *,
    user_id: str,
    tx_type: TransactionType | str,
    direction: Direction | str,
    amount,
    previous_balance,
    new_balance,
    description: str,
    project_id: str | None = None,
    reference: str | None = None,
    status: TransactionStatus | str = TransactionStatus.COMPLETED,
    **extra,
) -> dict:
    """Append one row to the transaction log. Balances are the caller's job."""
    return await store.insert("transactions", {
        "user_id": user_id,
        "project_id": project_id,
        "type": TransactionType(tx_type).value,
        "direction": Direction(direction).value,
        "amount": amount,
        "currency": CURRENCY,
        "previous_balance": previous_balance,
        "new_balance": new_balance,
        "status": TransactionStatus(status).value,
        "description": description,
        "reference": reference,
        "created_at": utcnow(),
        **extra,
    })


async def apply_credit_change(
    store: Store,
    user_id: str,
    amount,
    *,
    direction: Direction | str,
    tx_type: TransactionType | str,
    description: str,
    project_id: str | None = None,
    reference: str | None = None,
    balance_field: str = "credit",
) -> dict:
    """
    Move `amount` in or out of one profile balance and log it.

    Returns the transaction row. An outgoing move larger than the balance
    raises InsufficientCredits and changes nothing.
    """
    if amount is None or amount <= 0:
        raise InvalidRequest("Amount must be positive")
    if balance_field not in BALANCE_FIELDS:
        raise ValueError(f"Unknown balance field: {balance_field}")
    direction = Direction(direction)

    # Lock first, so two movements with the same reference serialize here
    profile = await store.get("profiles", user_id, for_update=True)
    if not profile:
        raise NotFound("Profile not found")

    if reference:
        existing = await store.find_one("transactions", reference=reference)
        if existing:
            logger.info("Skipping duplicate ledger movement %s", reference)
            return existing

    previous = profile.get(balance_field) or 0
    if direction is Direction.OUT:
        if previous < amount:
            raise InsufficientCredits(amount, previous)
        new = previous - amount
    else:
        new = previous + amount

    await store.update("profiles", user_id, **{balance_field: new, "updated_at": utcnow()})

    tx = await record_transaction(
        store,
        user_id=user_id,
        tx_type=tx_type,
        direction=direction,
        amount=amount,
        previous_balance=previous,
        new_balance=new,
        description=description,
        project_id=project_id,
        reference=reference,
    )
    logger.info(
        "Ledger %s %s %s on %s.%s (%s -> %s)",
        tx["type"], direction.value, amount, user_id, balance_field, previous, new,
    )
    return tx
