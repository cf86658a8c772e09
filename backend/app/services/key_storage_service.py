"""
Key Storage Service - stores PEM key files.

STORAGE_MODE=local keeps public keys and (password-protected) private keys
under separate base directories; STORAGE_MODE=s3 puts both in
S3_KEYS_BUCKET_NAME. Entities store the same relative path in either mode,
e.g. ``public_keys/vets/vet_jdoe_pub.pem``.

Uploads are validated with ``prepare_*`` before anything is written, then
written together with ``write_keys``. The returned backups let callers put
the previous files back with ``restore_keys`` when the surrounding
transaction fails.
"""

import asyncio
from pathlib import Path, PurePosixPath
from typing import List, NamedTuple, Optional, Sequence

import aiofiles
import aiofiles.os
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import StorageError, ValidationError
from app.core.logging_config import logger
from app.services.image_service import create_s3_client, retry_with_backoff

PEM_MARKER = b"-----BEGIN"
S3_MISSING_CODES = ("NoSuchKey", "404")


class PendingKey(NamedTuple):
    """A validated key upload that has not been written yet"""
    relative_path: str
    content: bytes
    private: bool


class KeyWriteBackup(NamedTuple):
    key: PendingKey
    previous: Optional[bytes]


class KeyStorageService:

    def __init__(self, public_base: Optional[Path] = None, private_base: Optional[Path] = None,
                 mode: Optional[str] = None):
        self.mode = (mode or settings.STORAGE_MODE).lower()
        self.public_base = (public_base or settings.PUBLIC_KEYS_DIR).resolve()
        self.private_base = (private_base or settings.PRIVATE_KEYS_DIR).resolve()
        self._client = None

    # ==========================================
    # Validation
    # ==========================================

    def _validate_sub_directory(self, sub_directory: str) -> str:
        if not sub_directory or not sub_directory.strip():
            raise ValidationError("Key sub-directory must not be blank", field="sub_directory")
        normalized = sub_directory.strip().replace("\\", "/")
        if ".." in normalized or normalized.startswith("/") or Path(normalized).is_absolute():
            raise ValidationError(f"Invalid key sub-directory: {sub_directory}", field="sub_directory")
        return normalized.strip("/")

    def _extension(self, upload: UploadFile) -> str:
        suffix = Path(upload.filename or "").suffix.lower()
        if suffix not in settings.ALLOWED_KEY_EXTENSIONS:
            raise ValidationError(
                f"Key file extension '{suffix or '(none)'}' not allowed. "
                f"Allowed: {', '.join(settings.ALLOWED_KEY_EXTENSIONS)}",
                field="key_file",
            )
        return suffix

    async def _read_validated(self, upload: UploadFile) -> bytes:
        content = await upload.read()
        if not content:
            raise ValidationError("Key file is empty", field="key_file")
        if len(content) > settings.MAX_KEY_FILE_SIZE:
            raise ValidationError(
                f"Key file exceeds maximum size of {settings.MAX_KEY_FILE_SIZE} bytes",
                field="key_file",
            )
        if PEM_MARKER not in content:
            raise ValidationError("Key file is not PEM encoded", field="key_file")
        return content

    def _check_relative(self, relative_path: str) -> str:
        if ".." in PurePosixPath(relative_path).parts or relative_path.startswith("/"):
            raise StorageError("Key path escapes the key storage", path=relative_path)
        return relative_path

    def _resolve_inside(self, base: Path, relative_path: str) -> Path:
        target = (base / relative_path).resolve()
        if target != base and base not in target.parents:
            raise StorageError("Resolved key path escapes the key storage directory", path=relative_path)
        return target

    def _base(self, private: bool) -> Path:
        return self.private_base if private else self.public_base

    # ==========================================
    # S3
    # ==========================================

    def _get_client(self):
        """Lazy initialization of the S3 client"""
        if self._client is None:
            self._client = create_s3_client()
        return self._client

    @retry_with_backoff()
    def _get_object(self, key: str) -> Optional[bytes]:
        try:
            response = self._get_client().get_object(Bucket=settings.S3_KEYS_BUCKET_NAME, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in S3_MISSING_CODES:
                return None
            raise
        return response["Body"].read()

    @retry_with_backoff()
    def _put_object(self, key: str, content: bytes) -> None:
        self._get_client().put_object(
            Bucket=settings.S3_KEYS_BUCKET_NAME,
            Key=key,
            Body=content,
            ContentType="application/x-pem-file",
        )

    @retry_with_backoff()
    def _delete_object(self, key: str) -> None:
        self._get_client().delete_object(Bucket=settings.S3_KEYS_BUCKET_NAME, Key=key)

    async def _s3(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except (ClientError, BotoCoreError, ConnectionError) as e:
            logger.error(f"[KeyStorage/S3] {func.__name__} failed for {args[0]}: {e}")
            raise StorageError(f"Key storage request failed: {e}", path=args[0])

    # ==========================================
    # Primitive operations
    # ==========================================

    async def _read_optional(self, private: bool, relative_path: str) -> Optional[bytes]:
        relative_path = self._check_relative(relative_path)
        if self.mode == "s3":
            return await self._s3(self._get_object, relative_path)

        target = self._resolve_inside(self._base(private), relative_path)
        if not await aiofiles.os.path.isfile(target):
            return None
        async with aiofiles.open(target, "rb") as f:
            return await f.read()

    async def _write(self, private: bool, relative_path: str, content: bytes) -> None:
        relative_path = self._check_relative(relative_path)
        if self.mode == "s3":
            await self._s3(self._put_object, relative_path, content)
            return

        target = self._resolve_inside(self._base(private), relative_path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error(f"[KeyStorage] Failed to write {relative_path}: {e}")
            raise StorageError(f"Could not store key file: {e}", path=relative_path)

    async def _remove(self, private: bool, relative_path: str) -> bool:
        relative_path = self._check_relative(relative_path)
        if self.mode == "s3":
            await self._s3(self._delete_object, relative_path)
            return True

        target = self._resolve_inside(self._base(private), relative_path)
        if not await aiofiles.os.path.isfile(target):
            return False
        try:
            await aiofiles.os.remove(target)
        except OSError as e:
            logger.error(f"[KeyStorage] Failed to delete {relative_path}: {e}")
            raise StorageError(f"Could not delete key file: {e}", path=relative_path)
        return True

    # ==========================================
    # Store
    # ==========================================

    async def _prepare(self, upload: UploadFile, sub_directory: str, desired_filename_base: str,
                       private: bool) -> PendingKey:
        sub_directory = self._validate_sub_directory(sub_directory)
        extension = self._extension(upload)
        content = await self._read_validated(upload)

        safe_base = Path(desired_filename_base).name
        if not safe_base or safe_base != desired_filename_base:
            raise ValidationError(f"Invalid key file name: {desired_filename_base}", field="filename")

        relative_path = f"{sub_directory}/{safe_base}{extension}"
        if self.mode != "s3":
            self._resolve_inside(self._base(private), relative_path)
        return PendingKey(relative_path, content, private)

    async def prepare_public_key(self, upload: UploadFile, sub_directory: str,
                                 desired_filename_base: str) -> PendingKey:
        return await self._prepare(upload, sub_directory, desired_filename_base, private=False)

    async def prepare_private_key(self, upload: UploadFile, sub_directory: str,
                                  desired_filename_base: str) -> PendingKey:
        return await self._prepare(upload, sub_directory, desired_filename_base, private=True)

    async def write_keys(self, keys: Sequence[PendingKey]) -> List[KeyWriteBackup]:
        """
        Write prepared keys, returning what each target held before.

        When one write fails, the keys already written are restored before
        the StorageError propagates.
        """
        written: List[KeyWriteBackup] = []
        for key in keys:
            previous = await self._read_optional(key.private, key.relative_path)
            try:
                await self._write(key.private, key.relative_path, key.content)
            except StorageError:
                await self.restore_keys(written)
                raise
            written.append(KeyWriteBackup(key, previous))
            logger.info(f"[KeyStorage] Stored key {key.relative_path} ({len(key.content)} bytes)")
        return written

    async def restore_keys(self, backups: Sequence[KeyWriteBackup]) -> None:
        """Put back the previous content of written keys; keys that did not exist are removed"""
        for backup in reversed(backups):
            key = backup.key
            try:
                if backup.previous is None:
                    await self._remove(key.private, key.relative_path)
                else:
                    await self._write(key.private, key.relative_path, backup.previous)
                logger.warning(f"[KeyStorage] Restored {key.relative_path}")
            except StorageError as e:
                logger.error(f"[KeyStorage] Could not restore {key.relative_path}: {e.message}")

    async def commit_with_keys(self, db: AsyncSession, keys: Sequence[PendingKey]) -> List[KeyWriteBackup]:
        """Write prepared keys, then commit; the previous key files are put back if either step fails"""
        backups = await self.write_keys(keys)
        try:
            await db.commit()
        except SQLAlchemyError:
            logger.error(f"[KeyStorage] Commit failed, restoring {len(backups)} key file(s)")
            await self.restore_keys(backups)
            raise
        return backups

    # ==========================================
    # Read / delete
    # ==========================================

    async def _read(self, private: bool, relative_path: Optional[str]) -> bytes:
        if not relative_path:
            raise StorageError("Key path is not configured")
        content = await self._read_optional(private, relative_path)
        if content is None:
            raise StorageError("Key file not found", path=relative_path)
        return content

    async def get_public_key_content(self, relative_path: Optional[str]) -> bytes:
        return await self._read(False, relative_path)

    async def get_private_key_content(self, relative_path: Optional[str]) -> bytes:
        return await self._read(True, relative_path)

    async def delete_key(self, relative_path: Optional[str]) -> None:
        """Delete a stored key from whichever base holds it; blank paths are ignored"""
        if not relative_path or not relative_path.strip():
            return
        for private in (False, True):
            if await self._remove(private, relative_path):
                logger.info(f"[KeyStorage] Deleted key {relative_path}")
                return
        logger.warning(f"[KeyStorage] Key to delete not found: {relative_path}")


# Singleton instance
key_storage_service = KeyStorageService()
