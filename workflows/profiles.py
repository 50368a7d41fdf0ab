# workflows/profiles.py
import logging

from errors import InvalidRequest, NotFound
from models.user import SELF_ASSIGNABLE_ROLES, new_profile
from store import Store, utcnow

logger = logging.getLogger(__name__)

# What a user may change about themselves; money and reputation are not on the list
EDITABLE_PROFILE_FIELDS = ("full_name", "avatar_url", "bio", "roles")


async def create_profile(store: Store, user_id: str, data: dict) -> tuple[dict, bool]:
    """Return (profile, created). A second call hands back the existing profile."""
    existing = await store.get("profiles", user_id)
    if existing:
        return existing, False

    profile = await store.insert("profiles", new_profile(user_id, data, utcnow()))
    logger.info("Created profile %s with roles %s", user_id, profile["roles"])
    return profile, True


async def get_profile(store: Store, user_id: str) -> dict:
    profile = await store.get("profiles", user_id)
    if not profile:
        raise NotFound("Profile not found")
    return profile


async def update_profile(store: Store, user_id: str, data: dict) -> dict:
    changes = {k: v for k, v in data.items() if k in EDITABLE_PROFILE_FIELDS and v is not None}
    if "roles" in changes:
        roles = [r for r in changes["roles"] if r in SELF_ASSIGNABLE_ROLES]
        if not roles:
            raise InvalidRequest("At least one of freelancer or client is required")
        changes["roles"] = roles
    if not changes:
        raise InvalidRequest("Nothing to update")

    profile = await store.update("profiles", user_id, **changes, updated_at=utcnow())
    if not profile:
        raise NotFound("Profile not found")
    return profile
