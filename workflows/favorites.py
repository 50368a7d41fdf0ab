# workflows/favorites.py
from errors import Conflict
from store import Store, utcnow
from workflows.proposals import load_project


def favorite_id(user_id: str, project_id: str) -> str:
    return f"{user_id}_{project_id}"


async def add_favorite(store: Store, user_id: str, project_id: str) -> dict:
    await load_project(store, project_id)
    if await store.get("favorites", favorite_id(user_id, project_id)):
        raise Conflict("Project already favorited")
    return await store.insert("favorites", {
        "id": favorite_id(user_id, project_id),
        "user_id": user_id,
        "project_id": project_id,
        "created_at": utcnow(),
    })


async def remove_favorite(store: Store, user_id: str, project_id: str) -> bool:
    # Removing something that is not there is fine
    return await store.delete("favorites", favorite_id(user_id, project_id))


async def is_favorite(store: Store, user_id: str, project_id: str) -> bool:
    return await store.get("favorites", favorite_id(user_id, project_id)) is not None


async def list_favorites(store: Store, user_id: str) -> list[dict]:
    """The user's favorites, newest first, each with its project (None if deleted)."""
    favorites = await store.find("favorites", user_id=user_id, order_by="created_at", descending=True)
    for fav in favorites:
        fav["project"] = await store.get("projects", fav["project_id"])
    return favorites
