# workflows/stats.py
from models.project import ACTIVE_STATUSES, ProjectStatus
from models.proposal import ProposalStatus
from models.user import Role
from store import Contains, Store

RECENT_ITEMS = 6


async def platform_stats(store: Store) -> dict:
    """Public numbers for the landing and about pages."""
    freelancer = Contains(Role.FREELANCER.value)
    client = Contains(Role.CLIENT.value)
    completed = ProjectStatus.COMPLETED.value

    return {
        "freelancers": await store.count("profiles", roles=freelancer),
        "clients": await store.count("profiles", roles=client),
        "projects": await store.count("projects"),
        "completed_projects": await store.count("projects", status=completed),
        "active_projects": await store.count("projects", status=list(ACTIVE_STATUSES)),
        "total_budget": await store.total("projects", "budget"),
        "total_earned": await store.total("projects", "budget", status=completed),
        "total_earned_from_profiles": await store.total("profiles", "total_earned", roles=freelancer),
        "total_spent": await store.total("profiles", "total_spent", roles=client),
    }


async def client_dashboard(store: Store, user_id: str) -> dict:
    recent = await store.find(
        "projects", client_id=user_id, order_by="created_at", descending=True, limit=RECENT_ITEMS
    )
    profile = await store.get("profiles", user_id) or {}
    return {
        "projects": recent,
        "stats": {
            "active_projects": await store.count("projects", client_id=user_id, status=list(ACTIVE_STATUSES)),
            "completed_projects": await store.count(
                "projects", client_id=user_id, status=ProjectStatus.COMPLETED.value
            ),
            "credit": profile.get("credit") or 0,
        },
    }


async def freelancer_dashboard(store: Store, user_id: str) -> dict:
    recent = await store.find(
        "proposals", freelancer_id=user_id, order_by="created_at", descending=True, limit=RECENT_ITEMS
    )
    profile = await store.get("profiles", user_id) or {}
    return {
        "proposals": recent,
        "stats": {
            "pending_proposals": await store.count(
                "proposals", freelancer_id=user_id, status=ProposalStatus.PENDING.value
            ),
            "accepted_proposals": await store.count(
                "proposals", freelancer_id=user_id, status=ProposalStatus.ACCEPTED.value
            ),
            "active_projects": await store.count(
                "projects", accepted_freelancer_id=user_id, status=list(ACTIVE_STATUSES)
            ),
            "completed_projects": profile.get("projects_completed") or 0,
            "credit": profile.get("credit") or 0,
            "total_earned": profile.get("total_earned") or 0,
        },
    }
