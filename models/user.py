# models/user.py
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Role(str, Enum):
    FREELANCER = "freelancer"
    CLIENT = "client"
    ADMIN = "admin"


# Roles a user may pick for themselves; admin is granted out of band
SELF_ASSIGNABLE_ROLES = (Role.FREELANCER.value, Role.CLIENT.value)


def has_role(profile: dict, role: str) -> bool:
    if role == Role.ADMIN.value and profile.get("is_admin"):
        return True
    return role in (profile.get("roles") or [])


def new_profile(user_id: str, data: dict, now: datetime) -> dict:
    """
    Build the stored profile for a new user.

    Only identity fields come from the caller. Billing and reputation
    fields are always server defaults, whatever the request contains.
    """
    roles = [r for r in (data.get("roles") or []) if r in SELF_ASSIGNABLE_ROLES]
    if not roles:
        roles = [Role.FREELANCER.value]

    return {
        "id": user_id,
        "email": data.get("email") or "",
        "full_name": data.get("full_name") or "",
        "avatar_url": data.get("avatar_url") or "",
        "bio": data.get("bio") or "",
        "roles": roles,
        "is_admin": False,
        "credit": 0,
        "plan": "free",
        "plan_status": "inactive",
        "total_earned": Decimal("0"),
        "total_spent": Decimal("0"),
        "projects_completed": 0,
        "projects_posted": 0,
        "rating": Decimal("0"),
        "total_ratings": 0,
        "communication_rating": Decimal("0"),
        "quality_rating": Decimal("0"),
        "timeliness_rating": Decimal("0"),
        "value_rating": Decimal("0"),
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
