# routes/notifications.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from routes.auth import get_current_user
from routes.common import ActionBody, get_notifier, ok, parse_payload, unknown_action

router = APIRouter(tags=["notifications"])


class ListNotifications(BaseModel):
    unread_only: bool = False
    limit: int = Field(default=50, ge=1, le=200)


class MarkRead(BaseModel):
    # None marks everything
    ids: list[str] | None = None


@router.post("/notifications")
async def notification_actions(body: ActionBody, user: dict = Depends(get_current_user), notifier=Depends(get_notifier)):
    if body.action == "get-notifications":
        data = parse_payload(ListNotifications, body)
        return ok(await notifier.list_for(user["id"], unread_only=data.unread_only, limit=data.limit))

    if body.action == "mark-read":
        data = parse_payload(MarkRead, body)
        return ok({"marked": await notifier.mark_read(user["id"], data.ids)})

    if body.action == "unread-count":
        return ok({"count": await notifier.unread_count(user["id"])})

    unknown_action(body.action)
