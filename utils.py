# utils.py
import logging
import os
import re
from datetime import datetime

import aiofiles  # async file writes, so a large upload does not block the event loop
from fastapi import UploadFile

from config import UPLOAD_ROOT
from errors import InvalidRequest, NotFound, PermissionDenied

logger = logging.getLogger(__name__)

# --- 1. Upload folders ---
FOLDER_AVATARS = "avatars"
FOLDER_PROJECTS = "projects"
FOLDER_PROPOSALS = "proposals"
FOLDER_GENERAL = "general"

ALLOWED_FOLDERS = (FOLDER_AVATARS, FOLDER_PROJECTS, FOLDER_PROPOSALS, FOLDER_GENERAL)

CHUNK_SIZE = 1024 * 64
MAX_UPLOAD_BYTES = 20 * 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^\w.\-()]")
# Timestamp that save_upload_file puts in front of every stored name
_STORED_PREFIX = re.compile(r"^\d{8}_\d{6}_\d{6}_")


def setup_upload_directories(root: str | None = None):
    """Create the upload root and its folders; safe to call on every start."""
    root = root or UPLOAD_ROOT
    for folder in ALLOWED_FOLDERS:
        os.makedirs(os.path.join(root, folder), exist_ok=True)


def safe_filename(name: str | None) -> str:
    name = os.path.basename((name or "").replace("\\", "/"))
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "file"


def safe_folder(folder: str | None) -> str:
    folder = folder or FOLDER_GENERAL
    if folder not in ALLOWED_FOLDERS:
        raise InvalidRequest(f"Unknown upload folder: {folder}")
    return folder


# --- 2. Saving ---

async def save_upload_file(file: UploadFile, folder: str | None = None, owner_id: str | None = None,
                           root: str | None = None) -> dict:
    """
    Stream an upload to disk under `root/folder/`.

    The stored name is `{timestamp}_{owner}_{original}`, so two users
    uploading resume.pdf at the same second never overwrite each other.

    Returns the public `/uploads/...` url plus name and size.
    """
    root = root or UPLOAD_ROOT
    folder = safe_folder(folder)
    target_dir = os.path.join(root, folder)
    os.makedirs(target_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    prefix = f"{timestamp}_{safe_filename(owner_id)}" if owner_id else timestamp
    new_filename = f"{prefix}_{safe_filename(file.filename)}"
    file_path = os.path.join(target_dir, new_filename)

    size = 0
    async with aiofiles.open(file_path, "wb") as out_file:
        while content := await file.read(CHUNK_SIZE):
            size += len(content)
            if size > MAX_UPLOAD_BYTES:
                break
            await out_file.write(content)

    if size > MAX_UPLOAD_BYTES:
        os.remove(file_path)
        raise InvalidRequest(f"File too large, the limit is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")

    logger.info("Stored upload %s/%s (%d bytes)", folder, new_filename, size)
    return {
        "url": f"/uploads/{folder}/{new_filename}",
        "filename": new_filename,
        "folder": folder,
        "size": size,
        "content_type": file.content_type,
    }


# --- 3. Deleting ---

def uploaded_by(filename: str, owner_id: str) -> bool:
    """True when a stored name carries `owner_id` right after its timestamp."""
    match = _STORED_PREFIX.match(filename)
    if not match:
        return False
    return filename[match.end():].startswith(f"{safe_filename(owner_id)}_")


def delete_local_upload(url: str, owner_id: str | None = None, root: str | None = None) -> str:
    """
    Remove a file previously returned by save_upload_file.

    Only `/uploads/...` urls are accepted, and the resolved path must stay
    inside `root`. With `owner_id` set, the file must also be one that user
    uploaded; pass None for admin deletes.
    """
    if not url or not url.startswith("/uploads/"):
        raise InvalidRequest("URL is not a recognized upload location")

    root_path = os.path.realpath(root or UPLOAD_ROOT)
    file_path = os.path.realpath(os.path.join(root_path, url[len("/uploads/"):]))
    if os.path.commonpath([root_path, file_path]) != root_path or file_path == root_path:
        raise InvalidRequest("URL is not a recognized upload location")
    if not os.path.isfile(file_path):
        raise NotFound("File not found")
    if owner_id is not None and not uploaded_by(os.path.basename(file_path), owner_id):
        raise PermissionDenied("You can only delete your own uploads")

    os.remove(file_path)
    logger.info("Deleted upload %s", url)
    return url
