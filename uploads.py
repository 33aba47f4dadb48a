import logging
import os
import re
import time
import uuid

from fastapi import HTTPException, UploadFile

import config

logger = logging.getLogger(__name__)

IMAGE_TYPES = re.compile(r"jpeg|jpg|png|gif")


def save_image(upload: UploadFile) -> str:
    """Store an uploaded product image and return its file name."""
    ext = os.path.splitext(upload.filename or "")[1].lower()
    if not IMAGE_TYPES.search(ext) or not IMAGE_TYPES.search(upload.content_type or ""):
        raise HTTPException(status_code=400, detail="Only image files are allowed!")
    data = upload.file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="Image exceeds the upload size limit")
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex}{ext}"
    with open(os.path.join(config.UPLOAD_DIR, filename), "wb") as fh:
        fh.write(data)
    logger.info("Stored image %s (%d bytes)", filename, len(data))
    return filename
