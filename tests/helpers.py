# tests/helpers.py
import asyncio

from models.user import new_profile
from notifications import Notifier
from routes.auth import create_id_token
from store import utcnow


def run(coro):
    return asyncio.run(coro)


async def add_profile(store, uid, roles=("freelancer",), credit=0, **extra):
    profile = new_profile(uid, {"email": f"{uid}@example.com", "full_name": uid.title(), "roles": list(roles)}, utcnow())
    profile.update(credit=credit, **extra)
    return await store.insert("profiles", profile)


def auth(uid: str) -> dict:
    return {"Authorization": f"Bearer {create_id_token(uid)}"}


class FailingNotifier(Notifier):
    """Notifier whose inserts always fail."""

    async def send(self, user_id, type, title, message, **refs):
        raise RuntimeError("notification backend down")
