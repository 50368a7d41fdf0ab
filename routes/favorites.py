# routes/favorites.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from db import get_store
from routes.auth import get_current_user
from routes.common import ActionBody, ok, parse_payload, unknown_action
from workflows import favorites

router = APIRouter(tags=["favorites"])


class ProjectRef(BaseModel):
    project_id: str


@router.post("/favorites")
async def favorite_actions(body: ActionBody, user: dict = Depends(get_current_user), store=Depends(get_store)):
    if body.action == "get-user-favorites":
        return ok(await favorites.list_favorites(store, user["id"]))

    if body.action not in ("add-favorite", "remove-favorite", "check-favorite"):
        unknown_action(body.action)

    project_id = parse_payload(ProjectRef, body).project_id

    if body.action == "add-favorite":
        return ok(await favorites.add_favorite(store, user["id"], project_id), message="Project added to favorites")
    if body.action == "remove-favorite":
        removed = await favorites.remove_favorite(store, user["id"], project_id)
        return ok({"removed": removed}, message="Project removed from favorites")
    return ok({"is_favorited": await favorites.is_favorite(store, user["id"], project_id)})
