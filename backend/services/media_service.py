"""
Image hosting.

Files are staged locally (utils.uploads), pushed to Cloudinary and the local
copy is removed whether the upload succeeded or not. The asset id returned by
the host is stored next to the URL so the image can be deleted later.

Nothing here is transactional with the database: callers that upload and then
write a record (or delete an asset and then upload a new one) can leave an
orphaned asset if the second step fails.
"""
import logging
from pathlib import Path
from typing import Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from core.config import settings
from core.errors import MediaUploadError
from utils.uploads import discard

logger = logging.getLogger(__name__)


class MediaAsset(BaseModel):
    url: str
    asset_id: str


class CloudinaryMediaStore:
    def __init__(self, cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str],
                 folder: Optional[str] = None):
        self.folder = folder
        self.configured = bool(cloud_name and api_key and api_secret)
        if self.configured:
            cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
        else:
            logger.warning("Cloudinary credentials are not configured; uploads will fail")

    async def upload(self, path: Path) -> MediaAsset:
        if not self.configured:
            raise MediaUploadError("Media storage is not configured")
        options = {"resource_type": "auto"}
        if self.folder:
            options["folder"] = self.folder
        try:
            # The SDK is blocking
            response = await run_in_threadpool(cloudinary.uploader.upload, str(path), **options)
        except (CloudinaryError, OSError) as e:
            logger.error(f"Cloudinary upload failed for {path}: {e}")
            raise MediaUploadError() from e
        url = response.get("secure_url") or response.get("url")
        public_id = response.get("public_id")
        if not url or not public_id:
            logger.error(f"Cloudinary upload returned no url/public_id: {response}")
            raise MediaUploadError()
        return MediaAsset(url=url, asset_id=public_id)

    async def delete(self, asset_id: Optional[str]) -> bool:
        """Best-effort delete; a failure is logged, not raised."""
        if not asset_id or not self.configured:
            return False
        try:
            response = await run_in_threadpool(cloudinary.uploader.destroy, asset_id)
        except CloudinaryError as e:
            logger.warning(f"Cloudinary delete failed for {asset_id}: {e}")
            return False
        return (response or {}).get("result") == "ok"


async def upload_staged_file(store, path: Path) -> MediaAsset:
    """Upload a staged temp file and always remove the local copy."""
    try:
        return await store.upload(path)
    finally:
        discard(path)


_media_store: Optional[CloudinaryMediaStore] = None

def get_media_store() -> CloudinaryMediaStore:
    global _media_store
    if _media_store is None:
        _media_store = CloudinaryMediaStore(
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET,
            folder=settings.CLOUDINARY_FOLDER,
        )
    return _media_store
