# notifications.py
"""
User-facing alerts.

Workflows build notification dicts while they hold their locks and hand
them to `Notifier.deliver` after commit. Delivery is best-effort: a failure
is logged and the next notification is still tried, and the settlement
that produced them stays committed.
"""
import logging

from store import Store, utcnow

logger = logging.getLogger(__name__)


def _note(user_id, type_, title, message, **refs) -> dict:
    return {"user_id": user_id, "type": type_, "title": title, "message": message, **refs}


# =========================================================
# Builders
# =========================================================

def proposal_submitted(project: dict, proposal: dict) -> dict:
    return _note(
        project["client_id"],
        "proposal_submitted",
        "New Proposal",
        f'You received a new proposal for project "{project["title"]}".',
        project_id=project["id"],
        proposal_id=proposal["id"],
        related_user_id=proposal["freelancer_id"],
    )


def proposal_accepted(project: dict, proposal: dict) -> dict:
    return _note(
        proposal["freelancer_id"],
        "proposal_accepted",
        "Proposal Accepted",
        f'Your proposal for project "{project["title"]}" has been accepted! '
        "You can now start working on the project.",
        project_id=project["id"],
        proposal_id=proposal["id"],
        related_user_id=project["client_id"],
    )


def proposal_rejected(project: dict, proposal: dict, refund_amount) -> dict:
    message = f'Your proposal for project "{project["title"]}" has been rejected.'
    if refund_amount:
        message += f" {refund_amount:,} credits have been refunded to your account."
    return _note(
        proposal["freelancer_id"],
        "proposal_rejected",
        "Proposal Rejected",
        message,
        project_id=project["id"],
        proposal_id=proposal["id"],
        amount=refund_amount or None,
        related_user_id=project["client_id"],
    )


def project_status_changed(user_id: str, project: dict, related_user_id: str | None = None) -> dict:
    status = project["status"]
    return _note(
        user_id,
        "project_status_changed",
        "Project Updated",
        f'Project "{project["title"]}" is now {status.replace("_", " ")}.',
        project_id=project["id"],
        related_user_id=related_user_id,
    )


def payout_received(project: dict, amount) -> dict:
    return _note(
        project["accepted_freelancer_id"],
        "payout_received",
        "Payment Released",
        f'You received {amount:,} for project "{project["title"]}".',
        project_id=project["id"],
        amount=amount,
        related_user_id=project["client_id"],
    )


def withdraw_requested(user_id: str, amount, source: str) -> dict:
    return _note(
        user_id,
        "withdraw_requested",
        "Withdrawal Requested",
        f"Your withdrawal of {amount:,} from {source.replace('_', ' ')} is being processed.",
        amount=amount,
    )


def topup_confirmed(payment: dict) -> dict:
    return _note(
        payment["user_id"],
        "topup_confirmed",
        "Top-up Successful",
        f"{payment['credits']:,} credits have been added to your account.",
        amount=payment["credits"],
    )


def topup_failed(payment: dict) -> dict:
    return _note(
        payment["user_id"],
        "topup_failed",
        "Top-up Failed",
        f"Your payment of {payment['amount']:,} {payment['currency']} did not go through. No credits were added.",
        amount=payment["amount"],
    )


# =========================================================
# Sink
# =========================================================

class Notifier:
    def __init__(self, store: Store):
        self.store = store

    async def send(self, user_id: str, type: str, title: str, message: str, **refs) -> dict:
        return await self.store.insert("notifications", {
            "user_id": user_id,
            "type": type,
            "title": title,
            "message": message,
            "project_id": refs.get("project_id"),
            "proposal_id": refs.get("proposal_id"),
            "amount": refs.get("amount"),
            "related_user_id": refs.get("related_user_id"),
            "read": False,
            "created_at": utcnow(),
        })

    async def deliver(self, pending: list[dict]) -> int:
        """Send every notification it can; return how many went out."""
        delivered = 0
        for note in pending:
            try:
                await self.send(**note)
                delivered += 1
            except Exception:
                logger.exception("Could not deliver %s notification to %s", note["type"], note["user_id"])
        return delivered

    async def list_for(self, user_id: str, unread_only: bool = False, limit: int = 50) -> list[dict]:
        filters = {"user_id": user_id}
        if unread_only:
            filters["read"] = False
        return await self.store.find(
            "notifications", order_by="created_at", descending=True, limit=limit, **filters
        )

    async def unread_count(self, user_id: str) -> int:
        return await self.store.count("notifications", user_id=user_id, read=False)

    async def mark_read(self, user_id: str, ids: list[str] | None = None) -> int:
        """Mark the given (or all) unread notifications of `user_id` as read."""
        unread = await self.store.find("notifications", user_id=user_id, read=False)
        marked = 0
        for note in unread:
            if ids is not None and note["id"] not in ids:
                continue
            await self.store.update("notifications", note["id"], read=True)
            marked += 1
        return marked
