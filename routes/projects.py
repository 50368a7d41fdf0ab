# routes/projects.py
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from db import get_store
from errors import PermissionDenied
from models.project import BudgetType, ProjectStatus
from models.user import Role, has_role
from routes.auth import get_current_user
from routes.common import ActionBody, get_notifier, ok, parse_payload, unknown_action
from workflows import projects

router = APIRouter(tags=["projects"])


class CreateProject(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    category_id: str | None = None
    budget: Decimal = Field(gt=0)
    budget_type: BudgetType = BudgetType.FIXED
    deadline: datetime | None = None


class UpdateProject(BaseModel):
    project_id: str
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    budget: Decimal | None = Field(default=None, gt=0)
    budget_type: BudgetType | None = None
    deadline: datetime | None = None


class ListProjects(BaseModel):
    status: ProjectStatus | None = None
    category_id: str | None = None
    mine: bool = False
    limit: int = Field(default=50, ge=1, le=200)


class ProjectRef(BaseModel):
    project_id: str


class CategoryChange(ProjectRef):
    category_id: str


# action -> progress workflow taking (store, notifier, user_id, project_id)
PROGRESS_ACTIONS = {
    "submit-for-review": projects.submit_for_review,
    "request-changes": projects.request_changes,
    "approve-work": projects.approve_work,
    "release-payout": projects.release_payout,
}


@router.post("/projects")
async def project_actions(
    body: ActionBody,
    user: dict = Depends(get_current_user),
    store=Depends(get_store),
    notifier=Depends(get_notifier),
):
    action = body.action

    if action == "create-project":
        if not has_role(user, Role.CLIENT.value):
            raise PermissionDenied("Only clients can post projects")
        data = parse_payload(CreateProject, body)
        fields = data.model_dump()
        fields["budget_type"] = data.budget_type.value
        return ok(await projects.create_project(store, user["id"], fields))

    if action == "get-project":
        data = parse_payload(ProjectRef, body)
        return ok(await projects.get_project(store, data.project_id))

    if action == "list-projects":
        data = parse_payload(ListProjects, body)
        found = await projects.list_projects(
            store,
            status=data.status.value if data.status else None,
            client_id=user["id"] if data.mine else None,
            category_id=data.category_id,
            limit=data.limit,
        )
        return ok(found)

    if action == "update-project":
        data = parse_payload(UpdateProject, body)
        fields = data.model_dump(exclude={"project_id"}, exclude_none=True)
        if "budget_type" in fields:
            fields["budget_type"] = fields["budget_type"].value
        return ok(await projects.update_project(store, user["id"], data.project_id, fields))

    if action == "preview-posting-fee":
        data = parse_payload(CategoryChange, body)
        return ok(await projects.preview_posting_fee_change(store, user["id"], data.project_id, data.category_id))

    if action == "change-category":
        data = parse_payload(CategoryChange, body)
        return ok(await projects.apply_posting_fee_change(store, user["id"], data.project_id, data.category_id))

    if action in PROGRESS_ACTIONS:
        data = parse_payload(ProjectRef, body)
        return ok(await PROGRESS_ACTIONS[action](store, notifier, user["id"], data.project_id))

    if action == "cancel-project":
        data = parse_payload(ProjectRef, body)
        result = await projects.cancel_project(store, notifier, user["id"], data.project_id)
        return ok(result)

    unknown_action(action)
