from pathlib import Path
import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import FileResponse

from ..utils.storage import resolve_under

router = APIRouter()
logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
}


@router.get("/static/{relative_path:path}")
async def get_archived_file(request: Request, relative_path: str):
    """Serve an archived call for playback."""
    archive_root: Path = request.app.state.settings.ARCHIVE_DIR
    file_path = resolve_under(archive_root, relative_path)
    if file_path is None:
        logger.warning(f"Attempt to access file outside the archive: '{relative_path}'.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid path.")

    if not file_path.is_file():
        logger.warning(f"Archived file '{relative_path}' not found at path '{file_path}'.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found.")

    media_type = MEDIA_TYPES.get(file_path.suffix.lower(), "application/octet-stream")
    return FileResponse(path=file_path, media_type=media_type, filename=file_path.name)
