from pathlib import Path
from typing import Optional
import time

import aiofiles
import aiofiles.os
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from loguru import logger
from pathvalidate import sanitize_filename

from api.dependencies import get_current_user
from core.config import PUBLIC_BASE_URL, UPLOAD_DIR
from db.models import User
from services.file_compatibility import SUPPORTED_FILE_TYPES


router = APIRouter(prefix="/api/files", tags=["Files"])

_MB = 1024 * 1024


def validate_upload(content_type: Optional[str], size: int) -> Optional[str]:
    """Error message for a file we refuse to store, None if it is fine."""
    rule = SUPPORTED_FILE_TYPES.get(content_type or "")
    if rule is None:
        labels = ", ".join(t["label"] for t in SUPPORTED_FILE_TYPES.values())
        return f"Unsupported file type. Supported formats: {labels}"

    if size > rule["max_size"]:
        return f"File size should be less than {rule['max_size'] // _MB}MB for {rule['label']} files"
    return None


@router.post("/upload")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
):
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")

    error = validate_upload(file.content_type, len(data))
    if error:
        raise HTTPException(status_code=400, detail=error)

    filename = sanitize_filename(file.filename or "")
    if not filename:
        raise HTTPException(status_code=400, detail="File name is required")

    pathname = f"{user.id}/{int(time.time() * 1000)}-{filename}"
    target = Path(UPLOAD_DIR) / pathname

    try:
        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        async with aiofiles.open(target, "wb") as out:
            await out.write(data)
    except OSError as exc:
        logger.error("Upload storage error: {}", exc)
        return JSONResponse({"error": "Upload failed due to server error"}, status_code=500)

    url = f"{PUBLIC_BASE_URL.rstrip('/')}/uploads/{pathname}"
    return {
        "url": url,
        "downloadUrl": f"{url}?download=1",
        "pathname": pathname,
        "contentType": file.content_type,
        "contentDisposition": f'attachment; filename="{filename}"',
    }
