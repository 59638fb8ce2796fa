import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from core.config import settings
from core.errors import ValidationError

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def _ensure_temp_dir(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)


async def stage_upload(upload: Optional[UploadFile], temp_dir: Optional[str] = None,
                       max_bytes: Optional[int] = None) -> Optional[Path]:
    """Write an uploaded file into the temp directory and return its path.

    Returns None when no file (or an empty one) was sent. Files larger than
    MAX_UPLOAD_BYTES are rejected and never left on disk.
    """
    if upload is None or not upload.filename:
        return None
    directory = Path(temp_dir or settings.UPLOAD_TEMP_DIR)
    _ensure_temp_dir(directory)
    limit = max_bytes or settings.MAX_UPLOAD_BYTES

    original = Path(upload.filename).name
    path = directory / f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{original}"
    written = 0
    try:
        with open(path, "wb") as fh:
            while True:
                chunk = await upload.read(_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > limit:
                    raise ValidationError(f"File too large; the limit is {limit // 1024} KB")
                fh.write(chunk)
    except Exception:
        discard(path)
        raise
    finally:
        await upload.close()

    if written == 0:
        discard(path)
        return None
    logger.debug(f"Staged upload {original} ({written} bytes) at {path}")
    return path


def discard(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove temp file {path}: {e}")
