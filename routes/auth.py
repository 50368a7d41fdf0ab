# routes/auth.py
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from config import SECRET_KEY, TOKEN_ALGORITHM, TOKEN_TTL_MINUTES
from db import get_store
from errors import NotFound, PermissionDenied, Unauthorized
from models.user import has_role
from routes.common import ActionBody, ok, parse_payload, unknown_action
from workflows import profiles

# --- 1. Router ---
router = APIRouter(tags=["auth"])

# auto_error=False so a missing header reaches get_token_uid and gets our 401 envelope
bearer = HTTPBearer(auto_error=False)


# --- 2. Tokens ---

def create_id_token(user_id: str, ttl_minutes: int = TOKEN_TTL_MINUTES) -> str:
    """Sign an ID token for `user_id` (used by the login service and the tests)."""
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": now, "exp": now + timedelta(minutes=ttl_minutes)}
    return jwt.encode(payload, SECRET_KEY, algorithm=TOKEN_ALGORITHM)


async def get_token_uid(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str:
    """
    Resolve the caller's user id from `Authorization: Bearer <id token>`.

    Runs before every protected route. The profile may not exist yet
    (create-profile only needs the uid).
    """
    if credentials is None:
        raise Unauthorized("No authorization token provided")

    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except jwt.PyJWTError:
        raise Unauthorized("Invalid authorization token")

    uid = payload.get("sub")
    if not uid:
        raise Unauthorized("Invalid authorization token")
    return uid


# --- 3. Current user ---

async def get_current_user(uid: str = Depends(get_token_uid), store=Depends(get_store)) -> dict:
    profile = await store.get("profiles", uid)
    if not profile:
        # Signed in, but never called create-profile
        raise NotFound("Profile not found")
    if not profile.get("is_active", True):
        raise PermissionDenied("Account is disabled")
    return profile


def require_role(role: str):
    """Dependency factory: the current user must hold `role` (admins pass the admin check via is_admin)."""
    async def guard(user: dict = Depends(get_current_user)) -> dict:
        if not has_role(user, role):
            raise PermissionDenied(f"Access denied: {role} role required")
        return user
    return guard


# --- 4. Profile actions ---

class CreateProfile(BaseModel):
    email: str = ""
    full_name: str = ""
    avatar_url: str = ""
    bio: str = ""
    roles: list[str] = []


class UpdateProfile(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    roles: list[str] | None = None


@router.post("/auth")
async def auth_actions(body: ActionBody, uid: str = Depends(get_token_uid), store=Depends(get_store)):
    if body.action == "create-profile":
        data = parse_payload(CreateProfile, body)
        profile, created = await profiles.create_profile(store, uid, data.model_dump())
        return ok(profile, created=created)

    if body.action == "get-profile":
        return ok(await profiles.get_profile(store, uid))

    if body.action == "update-profile":
        data = parse_payload(UpdateProfile, body)
        return ok(await profiles.update_profile(store, uid, data.model_dump(exclude_none=True)))

    unknown_action(body.action)
