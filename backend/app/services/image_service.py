"""
Image Service - stores user avatars and pet pictures.

STORAGE_MODE=local writes under IMAGES_PATH; STORAGE_MODE=s3 puts objects in
S3_BUCKET_NAME (or any S3-compatible endpoint via S3_ENDPOINT_URL). Both
return the same relative key, e.g. ``users/avatars/<uuid>.png``.
"""

import asyncio
import time
import uuid
from functools import wraps
from pathlib import Path
from typing import NamedTuple, Optional

import aiofiles
import aiofiles.os
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import StorageError, ValidationError
from app.core.logging_config import logger


def retry_with_backoff(max_retries: int = 3, base_delay: float = 0.5, max_delay: float = 8.0):
    """
    Retry a blocking S3 call with exponential backoff.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except (ClientError, BotoCoreError, ConnectionError) as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        delay = min(base_delay * (2 ** attempt), max_delay)
                        logger.warning(f"[S3-Retry] Attempt {attempt + 1}/{max_retries} failed: {e}. Retrying in {delay:.1f}s...")
                        time.sleep(delay)
                    else:
                        logger.error(f"[S3-Retry] All {max_retries} attempts failed: {e}")
            raise last_exception
        return wrapper
    return decorator


class ImageChange(NamedTuple):
    """An uploaded image not yet committed, and the image it replaces"""
    stored: Optional[str] = None
    replaced: Optional[str] = None


def create_s3_client():
    """boto3 S3 client for the configured region and optional S3-compatible endpoint"""
    kwargs = {"region_name": settings.AWS_REGION}
    if settings.S3_ENDPOINT_URL:
        kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    return boto3.client("s3", **kwargs)


def is_default_image(path: Optional[str]) -> bool:
    """Bundled default avatars are never deleted"""
    return bool(path) and (
        path.startswith(settings.DEFAULT_USER_IMAGE_PATH)
        or path.startswith(settings.DEFAULT_PET_IMAGE_PATH)
        or path.startswith("images/avatars/")
    )


class ImageService:

    def __init__(self):
        self.mode = settings.STORAGE_MODE.lower()
        self.base_dir = settings.IMAGES_DIR.resolve()
        self._client = None

    # ==========================================
    # Validation
    # ==========================================

    async def _read_validated(self, upload: UploadFile) -> tuple:
        suffix = Path(upload.filename or "").suffix.lower()
        if suffix not in settings.ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationError(
                f"Image type '{suffix or '(none)'}' not allowed. "
                f"Allowed: {', '.join(settings.ALLOWED_IMAGE_EXTENSIONS)}",
                field="image_file",
            )
        if upload.content_type and not upload.content_type.startswith("image/"):
            raise ValidationError(f"File is not an image: {upload.content_type}", field="image_file")

        content = await upload.read()
        if not content:
            raise ValidationError("Image file is empty", field="image_file")
        if len(content) > settings.MAX_IMAGE_SIZE:
            raise ValidationError(
                f"Image exceeds maximum size of {settings.MAX_IMAGE_SIZE // 1024 // 1024}MB",
                field="image_file",
            )
        return content, suffix

    def _key(self, sub_directory: str, suffix: str) -> str:
        if not sub_directory or not sub_directory.strip() or ".." in sub_directory:
            raise ValidationError(f"Invalid image sub-directory: {sub_directory}", field="sub_directory")
        return f"{sub_directory.strip().strip('/')}/{uuid.uuid4()}{suffix}"

    # ==========================================
    # S3
    # ==========================================

    def _get_client(self):
        """Lazy initialization of the S3 client"""
        if self._client is None:
            self._client = create_s3_client()
        return self._client

    @retry_with_backoff()
    def _put_object(self, key: str, content: bytes, content_type: Optional[str]) -> None:
        self._get_client().put_object(
            Bucket=settings.S3_BUCKET_NAME,
            Key=key,
            Body=content,
            ContentType=content_type or "application/octet-stream",
        )

    @retry_with_backoff()
    def _delete_object(self, key: str) -> None:
        self._get_client().delete_object(Bucket=settings.S3_BUCKET_NAME, Key=key)

    # ==========================================
    # Public API
    # ==========================================

    async def store_image(self, upload: UploadFile, sub_directory: str) -> str:
        """Validate and store an uploaded image. Returns its relative key."""
        content, suffix = await self._read_validated(upload)
        key = self._key(sub_directory, suffix)

        if self.mode == "s3":
            try:
                await asyncio.to_thread(self._put_object, key, content, upload.content_type)
            except (ClientError, BotoCoreError, ConnectionError) as e:
                raise StorageError(f"Failed to store image in S3: {e}", path=key)
            logger.info(f"[Images/S3] Stored {key} ({len(content)} bytes)")
            return key

        target = (self.base_dir / key).resolve()
        if self.base_dir not in target.parents:
            raise StorageError("Image path escapes the storage directory", path=key)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(content)
        except OSError as e:
            raise StorageError(f"Failed to store image: {e}", path=key)

        logger.info(f"[Images] Stored {key} ({len(content)} bytes)")
        return key

    async def delete_image(self, path: Optional[str]) -> None:
        """Delete a stored image. Default images and blank paths are skipped."""
        if not path or not path.strip():
            return
        if is_default_image(path):
            logger.debug(f"[Images] Skipping delete of default image {path}")
            return

        if self.mode == "s3":
            try:
                await asyncio.to_thread(self._delete_object, path)
                logger.info(f"[Images/S3] Deleted {path}")
            except (ClientError, BotoCoreError, ConnectionError) as e:
                logger.error(f"[Images/S3] Failed to delete {path}: {e}")
            return

        target = (self.base_dir / path).resolve()
        if self.base_dir not in target.parents:
            logger.warning(f"[Images] Refusing to delete outside storage: {path}")
            return
        if await aiofiles.os.path.isfile(target):
            try:
                await aiofiles.os.remove(target)
                logger.info(f"[Images] Deleted {path}")
            except OSError as e:
                logger.error(f"[Images] Failed to delete {path}: {e}")

    async def commit_image_change(self, db: AsyncSession, change: ImageChange) -> None:
        """Commit, then delete the replaced image. A failed commit deletes the new upload instead."""
        try:
            await db.commit()
        except SQLAlchemyError:
            await self.delete_image(change.stored)
            raise
        await self.delete_image(change.replaced)


# Singleton instance
image_service = ImageService()
