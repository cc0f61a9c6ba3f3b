"""
CodeSync Backend — Image Host Service (Cloudinary)
===================================================

What:  Uploads avatars to Cloudinary and destroys replaced ones.
Why:   The database stores only the returned URL and asset id; the bytes
       live with the image host.
How:   The cloudinary SDK is synchronous, so each call runs in a worker
       thread via asyncio.to_thread. Calls are retried with tenacity
       (exponential backoff + jitter); when retries run out the caller gets
       an ImageHostError (503).
Who:   Called by ProfileService for POST/DELETE /api/profile/avatar.

Upload settings:
    folder          AVATAR_FOLDER (default codesync/avatars)
    public_id       user_{user_id}_{unix_ms}
    transformation  400x400 crop=fill, then quality=auto
"""

import asyncio
import io
import logging
import time
from dataclasses import dataclass

import cloudinary
import cloudinary.uploader
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
)

from codesync.config import settings
from codesync.exceptions import ImageHostError

logger = logging.getLogger(__name__)

AVATAR_TRANSFORMATION = [
    {"width": 400, "height": 400, "crop": "fill"},
    {"quality": "auto"},
]

_retry_policy = retry(
    stop=stop_after_attempt(settings.retry_max_attempts),
    wait=wait_exponential_jitter(
        initial=settings.retry_min_wait,
        max=settings.retry_max_wait,
        jitter=min(1, settings.retry_max_wait),
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
)


@dataclass(frozen=True)
class UploadedImage:
    url: str
    public_id: str


def avatar_public_id(user_id) -> str:
    return f"user_{user_id}_{int(time.time() * 1000)}"


class ImageHostService:
    def __init__(self):
        if settings.cloudinary_configured:
            cloudinary.config(
                cloud_name=settings.cloudinary_cloud_name,
                api_key=settings.cloudinary_api_key,
                api_secret=settings.cloudinary_api_secret,
                secure=True,
            )
            logger.info("ImageHostService configured for cloud '%s'", settings.cloudinary_cloud_name)
        else:
            logger.warning("Cloudinary credentials missing; avatar uploads are disabled")

    @property
    def configured(self) -> bool:
        return settings.cloudinary_configured

    def _require_configured(self) -> None:
        if not self.configured:
            raise ImageHostError(
                message="Image upload service is not configured",
                context={"reason": "missing_credentials"},
            )

    async def upload_avatar(self, content: bytes, public_id: str) -> UploadedImage:
        """
        Upload avatar bytes and return the hosted URL and asset id.

        Raises:
            ImageHostError: not configured, or every attempt failed
        """
        self._require_configured()
        try:
            result = await self._upload_with_retry(content, public_id)
        except RetryError as e:
            last = e.last_attempt.exception() if e.last_attempt else None
            logger.error("Avatar upload failed after retries: %s", last)
            raise ImageHostError(context={"public_id": public_id, "error": str(last)})

        url = result.get("secure_url") or result.get("url")
        if not url or not result.get("public_id"):
            raise ImageHostError(
                message="Image host returned an incomplete response",
                context={"public_id": public_id},
            )
        logger.info("Avatar uploaded: %s (%d bytes)", result["public_id"], len(content))
        return UploadedImage(url=url, public_id=result["public_id"])

    async def destroy(self, public_id: str) -> None:
        """Delete an asset. Raises ImageHostError when every attempt failed."""
        self._require_configured()
        try:
            await self._destroy_with_retry(public_id)
        except RetryError as e:
            last = e.last_attempt.exception() if e.last_attempt else None
            logger.error("Destroying asset %s failed after retries: %s", public_id, last)
            raise ImageHostError(
                message="Could not delete the previous image",
                context={"public_id": public_id, "error": str(last)},
            )
        logger.info("Asset destroyed: %s", public_id)

    @_retry_policy
    async def _upload_with_retry(self, content: bytes, public_id: str) -> dict:
        return await asyncio.to_thread(
            cloudinary.uploader.upload,
            io.BytesIO(content),
            resource_type="image",
            folder=settings.avatar_folder,
            public_id=public_id,
            transformation=AVATAR_TRANSFORMATION,
        )

    @_retry_policy
    async def _destroy_with_retry(self, public_id: str) -> dict:
        return await asyncio.to_thread(cloudinary.uploader.destroy, public_id)


image_service = ImageHostService()
