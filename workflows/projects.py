# workflows/projects.py
"""
Project posting and progress.

A project is posted open (the client pays the category's posting fee),
gets a freelancer when a proposal is accepted, and then walks
in_progress -> in_review -> payout_project -> completed. Every move is
checked against PROJECT_TRANSITIONS, including who may make it.
"""
import logging
from decimal import Decimal

import notifications
from config import DEFAULT_POSTING_FEES
from errors import Conflict, InvalidRequest, PermissionDenied
from ledger import apply_credit_change, lock_profiles, record_transaction
from models.project import BudgetType, ProjectStatus, transition_actor
from models.proposal import ProposalStatus
from models.transaction import Direction, TransactionType
from notifications import Notifier
from store import Store, new_id, utcnow
from workflows.proposals import load_project, reject_and_refund, require_owner

logger = logging.getLogger(__name__)

# Fields the owner may edit while the project is still open
EDITABLE_FIELDS = ("title", "description", "budget", "budget_type", "deadline")


async def resolve_posting_fee(store: Store, category_id: str | None) -> int:
    """Category row fee, then the configured default, then free."""
    if not category_id:
        return 0
    category = await store.get("categories", category_id)
    if category and category.get("posting_fee") is not None:
        return category["posting_fee"]
    return DEFAULT_POSTING_FEES.get(category_id, 0)


def _check_budget(budget, budget_type) -> None:
    if budget is None or Decimal(str(budget)) <= 0:
        raise InvalidRequest("Budget must be greater than zero")
    if budget_type not in (BudgetType.FIXED.value, BudgetType.HOURLY.value):
        raise InvalidRequest(f"Unknown budget type: {budget_type}")


# --- 1. Posting ---

async def create_project(store: Store, client_id: str, data: dict) -> dict:
    title = (data.get("title") or "").strip()
    if not title:
        raise InvalidRequest("Title is required")
    budget_type = data.get("budget_type") or BudgetType.FIXED.value
    _check_budget(data.get("budget"), budget_type)

    category_id = data.get("category_id")

    async with store.transaction():
        fee = await resolve_posting_fee(store, category_id)
        project_id = new_id()

        if fee > 0:
            await apply_credit_change(
                store,
                client_id,
                fee,
                direction=Direction.OUT,
                tx_type=TransactionType.POSTING_FEE,
                description=f'Posting fee for project "{title}"',
                project_id=project_id,
                reference=f"posting_fee:{project_id}",
            )

        now = utcnow()
        project = await store.insert("projects", {
            "id": project_id,
            "client_id": client_id,
            "title": title,
            "description": data.get("description") or "",
            "category_id": category_id,
            "budget": data["budget"],
            "budget_type": budget_type,
            "status": ProjectStatus.OPEN.value,
            "posting_fee": fee,
            "proposals_count": 0,
            "accepted_freelancer_id": None,
            "accepted_proposal_id": None,
            "deadline": data.get("deadline"),
            "client_rated": False,
            "freelancer_rated": False,
            "created_at": now,
            "updated_at": now,
            "completed_at": None,
        })

        client = await store.get("profiles", client_id, for_update=True)
        await store.update(
            "profiles", client_id,
            projects_posted=(client.get("projects_posted") or 0) + 1,
            updated_at=now,
        )

    logger.info("Project %s posted by %s (fee %s)", project_id, client_id, fee)
    return project


async def get_project(store: Store, project_id: str) -> dict:
    return await load_project(store, project_id)


async def list_projects(
    store: Store,
    *,
    status: str | None = None,
    client_id: str | None = None,
    category_id: str | None = None,
    limit: int = 50,
) -> list[dict]:
    filters = {}
    if status:
        filters["status"] = status
    if client_id:
        filters["client_id"] = client_id
    if category_id:
        filters["category_id"] = category_id
    return await store.find("projects", order_by="created_at", descending=True, limit=limit, **filters)


async def update_project(store: Store, client_id: str, project_id: str, fields: dict) -> dict:
    changes = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None}
    if not changes:
        raise InvalidRequest("Nothing to update")

    async with store.transaction():
        project = await load_project(store, project_id, for_update=True)
        require_owner(project, client_id)
        if project["status"] != ProjectStatus.OPEN.value:
            raise Conflict("Only open projects can be edited")

        if "budget" in changes or "budget_type" in changes:
            _check_budget(
                changes.get("budget", project["budget"]),
                changes.get("budget_type", project["budget_type"]),
            )
        if "title" in changes:
            changes["title"] = changes["title"].strip()
            if not changes["title"]:
                raise InvalidRequest("Title is required")

        return await store.update("projects", project_id, **changes, updated_at=utcnow())


# --- 2. Category change on an open project ---

async def preview_posting_fee_change(store: Store, client_id: str, project_id: str, category_id: str) -> dict:
    """What switching to `category_id` would cost (positive) or give back (negative)."""
    project = await load_project(store, project_id)
    require_owner(project, client_id)

    old_fee = project.get("posting_fee") or 0
    new_fee = await resolve_posting_fee(store, category_id)
    difference = new_fee - old_fee
    client = await store.get("profiles", client_id)

    if difference > 0:
        action = "charge"
    elif difference < 0:
        action = "refund"
    else:
        action = "none"

    return {
        "project_id": project_id,
        "old_fee": old_fee,
        "new_fee": new_fee,
        "difference": difference,
        "action": action,
        "credit": client.get("credit", 0) if client else 0,
        "sufficient": difference <= 0 or (client is not None and client.get("credit", 0) >= difference),
    }


async def apply_posting_fee_change(store: Store, client_id: str, project_id: str, category_id: str) -> dict:
    async with store.transaction():
        project = await load_project(store, project_id, for_update=True)
        require_owner(project, client_id)
        if project["status"] != ProjectStatus.OPEN.value:
            raise Conflict("The category can only be changed while the project is open")

        old_fee = project.get("posting_fee") or 0
        new_fee = await resolve_posting_fee(store, category_id)
        difference = new_fee - old_fee

        if difference != 0:
            await apply_credit_change(
                store,
                client_id,
                abs(difference),
                direction=Direction.OUT if difference > 0 else Direction.IN,
                tx_type=TransactionType.POSTING_FEE_ADJUST,
                description=f'Posting fee adjustment for project "{project["title"]}" ({old_fee} -> {new_fee})',
                project_id=project_id,
            )

        project = await store.update(
            "projects", project_id,
            category_id=category_id,
            posting_fee=new_fee,
            updated_at=utcnow(),
        )

    logger.info("Project %s moved to category %s (fee %s -> %s)", project_id, category_id, old_fee, new_fee)
    return project


# --- 3. Progress ---

async def _lock_for_transition(store: Store, user_id: str, project_id: str, target: ProjectStatus) -> dict:
    project = await load_project(store, project_id, for_update=True)
    actor = transition_actor(project["status"], target.value)
    if actor is None:
        raise Conflict(f"Cannot move project from {project['status']} to {target.value}")

    if actor == "client" and project["client_id"] != user_id:
        raise PermissionDenied("Only the project owner can do this")
    if actor == "freelancer" and project.get("accepted_freelancer_id") != user_id:
        raise PermissionDenied("Only the assigned freelancer can do this")
    return project


async def _move(store: Store, notifier: Notifier, user_id: str, project_id: str, target: ProjectStatus) -> dict:
    async with store.transaction():
        project = await _lock_for_transition(store, user_id, project_id, target)
        project = await store.update("projects", project_id, status=target.value, updated_at=utcnow())

    if user_id == project["client_id"]:
        counterpart = project.get("accepted_freelancer_id")
    else:
        counterpart = project["client_id"]

    logger.info("Project %s -> %s by %s", project_id, target.value, user_id)
    if counterpart:
        await notifier.deliver([notifications.project_status_changed(counterpart, project, user_id)])
    return project


async def submit_for_review(store: Store, notifier: Notifier, freelancer_id: str, project_id: str) -> dict:
    return await _move(store, notifier, freelancer_id, project_id, ProjectStatus.IN_REVIEW)


async def request_changes(store: Store, notifier: Notifier, client_id: str, project_id: str) -> dict:
    return await _move(store, notifier, client_id, project_id, ProjectStatus.IN_PROGRESS)


async def approve_work(store: Store, notifier: Notifier, client_id: str, project_id: str) -> dict:
    return await _move(store, notifier, client_id, project_id, ProjectStatus.PAYOUT_PROJECT)


async def release_payout(store: Store, notifier: Notifier, client_id: str, project_id: str) -> dict:
    """
    Pay the freelancer the project budget and close the project.

    The freelancer's total_earned grows by the budget (escrow_release) and
    the client's total_spent grows by the same amount (escrow_payment).
    Credits are not touched.
    """
    async with store.transaction():
        project = await _lock_for_transition(store, client_id, project_id, ProjectStatus.COMPLETED)
        freelancer_id = project["accepted_freelancer_id"]
        amount = project.get("budget") or 0
        now = utcnow()
        await lock_profiles(store, [freelancer_id, client_id])

        if amount > 0:
            await apply_credit_change(
                store,
                freelancer_id,
                amount,
                direction=Direction.IN,
                tx_type=TransactionType.ESCROW_RELEASE,
                description=f'Received {amount} for project "{project["title"]}"',
                project_id=project_id,
                reference=f"escrow_release:{project_id}",
                balance_field="total_earned",
            )

            client = await store.get("profiles", client_id, for_update=True)
            spent = client.get("total_spent") or 0
            await store.update("profiles", client_id, total_spent=spent + amount, updated_at=now)
            await record_transaction(
                store,
                user_id=client_id,
                tx_type=TransactionType.ESCROW_PAYMENT,
                direction=Direction.OUT,
                amount=amount,
                previous_balance=spent,
                new_balance=spent + amount,
                description=f'Paid {amount} for project "{project["title"]}"',
                project_id=project_id,
                reference=f"escrow_payment:{project_id}",
            )

        freelancer = await store.get("profiles", freelancer_id, for_update=True)
        await store.update(
            "profiles", freelancer_id,
            projects_completed=(freelancer.get("projects_completed") or 0) + 1,
            updated_at=now,
        )
        project = await store.update(
            "projects", project_id,
            status=ProjectStatus.COMPLETED.value,
            completed_at=now,
            updated_at=now,
        )

    logger.info("Project %s completed, %s released to %s", project_id, amount, freelancer_id)
    if amount > 0:
        note = notifications.payout_received(project, amount)
    else:
        note = notifications.project_status_changed(freelancer_id, project, client_id)
    await notifier.deliver([note])
    return project


async def cancel_project(store: Store, notifier: Notifier, client_id: str, project_id: str) -> dict:
    """Close an open project, refunding every pending bid and the posting fee."""
    pending_notes = []
    refunds = []
    rejected_ids = []

    async with store.transaction():
        project = await _lock_for_transition(store, client_id, project_id, ProjectStatus.CANCELLED)

        pending = await store.find(
            "proposals", project_id=project_id, status=ProposalStatus.PENDING.value, for_update=True
        )
        await lock_profiles(store, [client_id, *(p["freelancer_id"] for p in pending)])
        for proposal in pending:
            row, refund = await reject_and_refund(store, project, proposal, client_id)
            rejected_ids.append(row["id"])
            if refund:
                refunds.append(refund)
            pending_notes.append(
                notifications.proposal_rejected(project, row, refund["amount"] if refund else 0)
            )

        fee = project.get("posting_fee") or 0
        if fee > 0:
            refunds.append(await apply_credit_change(
                store,
                client_id,
                fee,
                direction=Direction.IN,
                tx_type=TransactionType.POSTING_FEE_REFUND,
                description=f'Posting fee refund for cancelled project "{project["title"]}"',
                project_id=project_id,
                reference=f"posting_fee_refund:{project_id}",
            ))

        project = await store.update(
            "projects", project_id, status=ProjectStatus.CANCELLED.value, updated_at=utcnow()
        )

    logger.info("Project %s cancelled, %d proposals refunded", project_id, len(rejected_ids))
    await notifier.deliver(pending_notes)
    return {"project": project, "rejected_proposal_ids": rejected_ids, "refunds": refunds}


# --- 4. Maintenance ---

async def recount_proposals(store: Store) -> list[dict]:
    """Recompute proposals_count for every project; return the ones that changed."""
    changes = []
    for project in await store.find("projects"):
        actual = await store.count("proposals", project_id=project["id"])
        if actual != project.get("proposals_count"):
            await store.update("projects", project["id"], proposals_count=actual)
            changes.append({"project_id": project["id"], "old": project.get("proposals_count"), "new": actual})

    logger.info("Recounted proposals, %d projects corrected", len(changes))
    return changes
