from pathlib import Path
from uuid import uuid4
import logging

import aiofiles
from fastapi import HTTPException, UploadFile

from ..config import get_settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class MediaStorage:
    """Guarda ficheros subidos en MEDIA_DIR; se sirven desde /media."""

    def __init__(self, media_dir: str | Path):
        self.media_dir = Path(media_dir)

    async def save_image(self, file: UploadFile, folder: str) -> str:
        if not (file.content_type or "").startswith("image/"):
            raise HTTPException(415, "Solo se admiten imágenes")

        ext = Path(file.filename or "").suffix.lower() or ".jpg"
        rel_path = Path(folder) / f"{uuid4().hex}{ext}"
        abs_path = self.media_dir / rel_path
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(abs_path, "wb") as out:
            while chunk := await file.read(CHUNK_SIZE):
                await out.write(chunk)

        logger.info(f"Fichero guardado en {abs_path}")
        return f"/media/{rel_path.as_posix()}"


def get_media_storage() -> MediaStorage:
    return MediaStorage(get_settings().media_dir)
