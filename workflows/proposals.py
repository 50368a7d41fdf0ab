# workflows/proposals.py
"""
Proposal lifecycle: submit, accept, reject, withdraw.

Accepting a proposal is one database transaction:

1. lock the project, then the chosen proposal (always in that order)
2. mark the proposal accepted and the project in_progress
3. reject every other pending proposal and refund the fee it paid
4. commit, then notify the accepted and rejected freelancers

Nothing is written if any step fails. Repeating an accept that already
happened returns the current state without side effects.
"""
import logging
from dataclasses import dataclass, field

import notifications
from errors import Conflict, InvalidRequest, NotFound, PermissionDenied
from ledger import apply_credit_change, lock_profiles, refund_reference
from models.project import BudgetType, ProjectStatus
from models.proposal import ProposalStatus
from models.transaction import Direction, TransactionType
from notifications import Notifier
from store import Store, new_id, utcnow

logger = logging.getLogger(__name__)


@dataclass
class Settlement:
    """Outcome of an accept/reject/withdraw call."""
    project: dict
    proposal: dict
    rejected: list[dict] = field(default_factory=list)
    refunds: list[dict] = field(default_factory=list)
    notifications_sent: int = 0
    already_settled: bool = False

    def to_dict(self) -> dict:
        return {
            "project": self.project,
            "proposal": self.proposal,
            "rejected_proposal_ids": [p["id"] for p in self.rejected],
            "refunds": self.refunds,
            "notifications_sent": self.notifications_sent,
            "already_settled": self.already_settled,
        }


# ---------------------------------------------------------
# Shared lookups
# ---------------------------------------------------------

async def load_project(store: Store, project_id: str, *, for_update: bool = False) -> dict:
    project = await store.get("projects", project_id, for_update=for_update)
    if not project:
        raise NotFound("Project not found")
    return project


async def load_proposal(store: Store, proposal_id: str, *, for_update: bool = False) -> dict:
    proposal = await store.get("proposals", proposal_id, for_update=for_update)
    if not proposal:
        raise NotFound("Proposal not found")
    return proposal


def require_owner(project: dict, user_id: str) -> None:
    if project["client_id"] != user_id:
        raise PermissionDenied("Only the project owner can do this")


async def _lock_pair(store: Store, proposal_id: str, project_id: str | None) -> tuple[dict, dict]:
    """Lock project then proposal, so concurrent settlements queue on the project row."""
    proposal = await load_proposal(store, proposal_id)
    if project_id and proposal["project_id"] != project_id:
        raise InvalidRequest("Proposal does not belong to this project")

    project = await load_project(store, proposal["project_id"], for_update=True)
    proposal = await load_proposal(store, proposal_id, for_update=True)
    return project, proposal


async def reject_and_refund(store: Store, project: dict, proposal: dict, processed_by: str) -> tuple[dict, dict | None]:
    """
    Mark one pending proposal rejected and give back its fee.

    Must run inside a transaction holding the project lock. Returns the
    updated proposal and the refund transaction (None when nothing was paid).
    """
    now = utcnow()
    rejected = await store.update(
        "proposals",
        proposal["id"],
        status=ProposalStatus.REJECTED.value,
        processed_by=processed_by,
        processed_at=now,
        updated_at=now,
    )

    refund = None
    amount = proposal.get("fee_paid") or 0
    if amount > 0:
        refund = await apply_credit_change(
            store,
            proposal["freelancer_id"],
            amount,
            direction=Direction.IN,
            tx_type=TransactionType.PROPOSAL_REFUND,
            description=f'Refund for rejected proposal on project "{project["title"]}"',
            project_id=project["id"],
            reference=refund_reference(proposal["id"]),
        )
    return rejected, refund


# =========================================================
# Freelancer side
# =========================================================

async def submit_proposal(
    store: Store,
    notifier: Notifier,
    freelancer_id: str,
    project_id: str,
    *,
    cover_letter: str,
    proposed_budget,
    proposed_rate=None,
    estimated_duration: str = "",
) -> dict:
    """Create a pending proposal and charge the project's posting fee to the freelancer."""
    async with store.transaction():
        project = await load_project(store, project_id, for_update=True)

        if project["status"] != ProjectStatus.OPEN.value:
            raise Conflict("Project is not accepting proposals")
        if project["client_id"] == freelancer_id:
            raise PermissionDenied("You cannot submit a proposal to your own project")
        if await store.find_one("proposals", project_id=project_id, freelancer_id=freelancer_id):
            raise Conflict("You have already submitted a proposal for this project")
        if project.get("budget_type") == BudgetType.HOURLY.value and not proposed_rate:
            raise InvalidRequest("An hourly rate is required for hourly projects")

        proposal_id = new_id()
        fee = project.get("posting_fee") or 0
        if fee > 0:
            await apply_credit_change(
                store,
                freelancer_id,
                fee,
                direction=Direction.OUT,
                tx_type=TransactionType.PROPOSAL_FEE,
                description=f'Proposal submission fee for project "{project["title"]}"',
                project_id=project_id,
                reference=f"proposal_fee:{proposal_id}",
            )

        now = utcnow()
        proposal = await store.insert("proposals", {
            "id": proposal_id,
            "project_id": project_id,
            "freelancer_id": freelancer_id,
            "cover_letter": cover_letter,
            "proposed_budget": proposed_budget,
            "proposed_rate": proposed_rate if project.get("budget_type") == BudgetType.HOURLY.value else None,
            "estimated_duration": estimated_duration,
            "status": ProposalStatus.PENDING.value,
            "fee_paid": fee,
            "processed_by": None,
            "processed_at": None,
            "created_at": now,
            "updated_at": now,
        })
        project = await store.update(
            "projects", project_id,
            proposals_count=(project.get("proposals_count") or 0) + 1,
            updated_at=now,
        )

    logger.info("Proposal %s submitted on project %s (fee %s)", proposal_id, project_id, fee)
    await notifier.deliver([notifications.proposal_submitted(project, proposal)])
    return proposal


async def withdraw_proposal(store: Store, freelancer_id: str, proposal_id: str) -> Settlement:
    """The freelancer pulls back their own pending proposal. The fee is not refunded."""
    async with store.transaction():
        project, proposal = await _lock_pair(store, proposal_id, None)

        if proposal["freelancer_id"] != freelancer_id:
            raise PermissionDenied("You can only withdraw your own proposals")
        if proposal["status"] == ProposalStatus.WITHDRAWN.value:
            return Settlement(project, proposal, already_settled=True)
        if proposal["status"] != ProposalStatus.PENDING.value:
            raise Conflict(f"Proposal is already {proposal['status']}")

        now = utcnow()
        proposal = await store.update(
            "proposals", proposal_id,
            status=ProposalStatus.WITHDRAWN.value,
            processed_by=freelancer_id,
            processed_at=now,
            updated_at=now,
        )

    logger.info("Proposal %s withdrawn", proposal_id)
    return Settlement(project, proposal)


async def list_freelancer_proposals(store: Store, freelancer_id: str, status: str | None = None) -> list[dict]:
    filters = {"freelancer_id": freelancer_id}
    if status:
        filters["status"] = status
    proposals = await store.find("proposals", order_by="created_at", descending=True, **filters)

    for p in proposals:
        project = await store.get("projects", p["project_id"])
        p["project"] = {
            "id": project["id"],
            "title": project["title"],
            "status": project["status"],
            "budget": project["budget"],
            "client_id": project["client_id"],
        } if project else None
    return proposals


# =========================================================
# Client side
# =========================================================

async def accept_proposal(
    store: Store,
    notifier: Notifier,
    client_id: str,
    proposal_id: str,
    *,
    project_id: str | None = None,
) -> Settlement:
    pending_notes = []

    async with store.transaction():
        project, proposal = await _lock_pair(store, proposal_id, project_id)
        require_owner(project, client_id)

        # Double submit: the same proposal already won, nothing left to do
        if project.get("accepted_proposal_id") == proposal_id and proposal["status"] == ProposalStatus.ACCEPTED.value:
            logger.info("Proposal %s already accepted, returning current state", proposal_id)
            return Settlement(project, proposal, already_settled=True)

        if project["status"] != ProjectStatus.OPEN.value:
            raise Conflict(f"Project is {project['status']}; proposals can only be accepted while it is open")
        if proposal["status"] != ProposalStatus.PENDING.value:
            raise Conflict(f"Proposal is already {proposal['status']}")

        now = utcnow()
        proposal = await store.update(
            "proposals", proposal_id,
            status=ProposalStatus.ACCEPTED.value,
            processed_by=client_id,
            processed_at=now,
            updated_at=now,
        )
        project = await store.update(
            "projects", project["id"],
            status=ProjectStatus.IN_PROGRESS.value,
            accepted_freelancer_id=proposal["freelancer_id"],
            accepted_proposal_id=proposal_id,
            updated_at=now,
        )
        pending_notes.append(notifications.proposal_accepted(project, proposal))

        rejected = []
        refunds = []
        others = await store.find(
            "proposals", project_id=project["id"], status=ProposalStatus.PENDING.value, for_update=True
        )
        await lock_profiles(store, [p["freelancer_id"] for p in others])
        for other in others:
            row, refund = await reject_and_refund(store, project, other, client_id)
            rejected.append(row)
            if refund:
                refunds.append(refund)
            pending_notes.append(
                notifications.proposal_rejected(project, row, refund["amount"] if refund else 0)
            )

    logger.info(
        "Project %s settled: accepted %s, rejected %d, refunded %d",
        project["id"], proposal_id, len(rejected), len(refunds),
    )
    sent = await notifier.deliver(pending_notes)
    return Settlement(project, proposal, rejected, refunds, notifications_sent=sent)


async def reject_proposal(
    store: Store,
    notifier: Notifier,
    client_id: str,
    proposal_id: str,
    *,
    project_id: str | None = None,
) -> Settlement:
    async with store.transaction():
        project, proposal = await _lock_pair(store, proposal_id, project_id)
        require_owner(project, client_id)

        if proposal["status"] == ProposalStatus.REJECTED.value:
            return Settlement(project, proposal, already_settled=True)
        if proposal["status"] != ProposalStatus.PENDING.value:
            raise Conflict(f"Proposal is already {proposal['status']}")

        proposal, refund = await reject_and_refund(store, project, proposal, client_id)

    logger.info("Proposal %s rejected (refund %s)", proposal_id, refund["amount"] if refund else 0)
    sent = await notifier.deliver([
        notifications.proposal_rejected(project, proposal, refund["amount"] if refund else 0)
    ])
    return Settlement(
        project, proposal, [proposal], [refund] if refund else [], notifications_sent=sent
    )


async def list_project_proposals(
    store: Store, client_id: str, project_id: str, status: str | None = None
) -> list[dict]:
    """Proposals on one project, newest first, with a short freelancer card each."""
    project = await load_project(store, project_id)
    require_owner(project, client_id)

    filters = {"project_id": project_id}
    if status:
        filters["status"] = status
    proposals = await store.find("proposals", order_by="created_at", descending=True, **filters)

    for p in proposals:
        freelancer = await store.get("profiles", p["freelancer_id"])
        p["freelancer"] = {
            "id": freelancer["id"],
            "full_name": freelancer["full_name"],
            "avatar_url": freelancer["avatar_url"],
            "rating": freelancer["rating"],
        } if freelancer else None
    return proposals
