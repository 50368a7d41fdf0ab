# routes/stats.py
"""Read-only numbers: public platform stats, the two dashboards and the admin recount."""
from fastapi import APIRouter, Depends

from db import get_store
from models.user import Role
from routes.auth import get_current_user, require_role
from routes.common import ok
from workflows import projects, stats

router = APIRouter(tags=["stats"])


@router.get("/stats")
async def get_platform_stats(store=Depends(get_store)):
    # Public: shown on the landing page before sign-in
    return ok(await stats.platform_stats(store))


@router.get("/dashboard/client")
async def get_client_dashboard(user: dict = Depends(get_current_user), store=Depends(get_store)):
    return ok(await stats.client_dashboard(store, user["id"]))


@router.get("/dashboard/freelancer")
async def get_freelancer_dashboard(user: dict = Depends(get_current_user), store=Depends(get_store)):
    return ok(await stats.freelancer_dashboard(store, user["id"]))


@router.post("/admin/update-proposals-count")
async def update_proposals_count(
    admin: dict = Depends(require_role(Role.ADMIN.value)),
    store=Depends(get_store),
):
    changes = await projects.recount_proposals(store)
    return ok(changes, updated=len(changes))
