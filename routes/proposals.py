# routes/proposals.py
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from db import get_store
from errors import InvalidRequest, PermissionDenied
from models.proposal import ProposalStatus
from models.user import Role, has_role
from routes.auth import get_current_user
from routes.common import ActionBody, get_notifier, ok, parse_payload, unknown_action
from workflows import proposals

router = APIRouter(tags=["proposals"])


class CreateProposal(BaseModel):
    project_id: str
    cover_letter: str = Field(min_length=1)
    proposed_budget: Decimal = Field(gt=0)
    proposed_rate: Decimal | None = Field(default=None, gt=0)
    estimated_duration: str = ""


class ProjectProposals(BaseModel):
    project_id: str
    status: ProposalStatus | None = None


class MyProposals(BaseModel):
    status: ProposalStatus | None = None


class ProposalRef(BaseModel):
    proposal_id: str
    project_id: str | None = None


class StatusChange(ProposalRef):
    status: ProposalStatus


async def _settle(action: str, store, notifier, user: dict, proposal_id: str, project_id: str | None):
    if action == "accept":
        result = await proposals.accept_proposal(store, notifier, user["id"], proposal_id, project_id=project_id)
    elif action == "reject":
        result = await proposals.reject_proposal(store, notifier, user["id"], proposal_id, project_id=project_id)
    else:
        result = await proposals.withdraw_proposal(store, user["id"], proposal_id)
    return ok(result.to_dict())


@router.post("/proposals")
async def proposal_actions(
    body: ActionBody,
    user: dict = Depends(get_current_user),
    store=Depends(get_store),
    notifier=Depends(get_notifier),
):
    action = body.action

    # --- Freelancer ---
    if action == "create-proposal":
        if not has_role(user, Role.FREELANCER.value):
            raise PermissionDenied("Only freelancers can submit proposals")
        data = parse_payload(CreateProposal, body)
        proposal = await proposals.submit_proposal(
            store,
            notifier,
            user["id"],
            data.project_id,
            cover_letter=data.cover_letter,
            proposed_budget=data.proposed_budget,
            proposed_rate=data.proposed_rate,
            estimated_duration=data.estimated_duration,
        )
        return ok(proposal)

    if action == "get-my-proposals":
        data = parse_payload(MyProposals, body)
        status = data.status.value if data.status else None
        return ok(await proposals.list_freelancer_proposals(store, user["id"], status))

    if action == "withdraw-proposal":
        data = parse_payload(ProposalRef, body)
        return await _settle("withdraw", store, notifier, user, data.proposal_id, data.project_id)

    # --- Client ---
    if action == "get-proposals":
        data = parse_payload(ProjectProposals, body)
        status = data.status.value if data.status else None
        return ok(await proposals.list_project_proposals(store, user["id"], data.project_id, status))

    if action == "accept-proposal":
        data = parse_payload(ProposalRef, body)
        return await _settle("accept", store, notifier, user, data.proposal_id, data.project_id)

    if action == "reject-proposal":
        data = parse_payload(ProposalRef, body)
        return await _settle("reject", store, notifier, user, data.proposal_id, data.project_id)

    if action == "update-proposal-status":
        data = parse_payload(StatusChange, body)
        verbs = {
            ProposalStatus.ACCEPTED: "accept",
            ProposalStatus.REJECTED: "reject",
            ProposalStatus.WITHDRAWN: "withdraw",
        }
        if data.status not in verbs:
            raise InvalidRequest(f"Cannot set a proposal to {data.status.value}")
        return await _settle(verbs[data.status], store, notifier, user, data.proposal_id, data.project_id)

    unknown_action(action)
