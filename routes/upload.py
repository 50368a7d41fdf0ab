# routes/upload.py
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from models.user import Role, has_role
from routes.auth import get_current_user
from routes.common import ok
from utils import delete_local_upload, save_upload_file

router = APIRouter(tags=["upload"])


class DeleteAvatar(BaseModel):
    url: str


@router.post("/upload")
async def upload_file(
    file: UploadFile = File(...),
    folder: str | None = Form(None),
    user: dict = Depends(get_current_user),
):
    """Store one file locally; the returned url is served from /uploads."""
    stored = await save_upload_file(file, folder, owner_id=user["id"])
    return ok(stored)


@router.post("/delete-avatar")
async def delete_avatar(body: DeleteAvatar, user: dict = Depends(get_current_user)):
    """Delete one of the caller's own uploads; admins may delete any."""
    owner_id = None if has_role(user, Role.ADMIN.value) else user["id"]
    return ok({"deleted": "local", "url": delete_local_upload(body.url, owner_id)})
