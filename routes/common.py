# routes/common.py
"""
Pieces every router shares: the JSON envelope, the `action` body and the
notifier dependency.
"""
from fastapi import Depends
from pydantic import BaseModel, ConfigDict, ValidationError

from db import get_store
from errors import InvalidRequest
from notifications import Notifier


class ActionBody(BaseModel):
    """`{"action": "...", ...}`; everything besides `action` is the payload."""
    model_config = ConfigDict(extra="allow")

    action: str

    @property
    def payload(self) -> dict:
        return dict(self.model_extra or {})


def parse_payload(model: type[BaseModel], body: ActionBody):
    try:
        return model.model_validate(body.payload)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise InvalidRequest(f"{field}: {first['msg']}") from e


def ok(data=None, **extra) -> dict:
    return {"success": True, "data": data, **extra}


def unknown_action(action: str):
    raise InvalidRequest(f"Invalid action: {action}")


async def get_notifier(store=Depends(get_store)) -> Notifier:
    return Notifier(store)
