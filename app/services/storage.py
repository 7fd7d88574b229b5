"""
File Storage Service

Stores review photos and videos and returns their public URLs.

Providers (selected with STORAGE_PROVIDER):
- local: files written to UPLOAD_DIR, served by the app under /uploads
- s3: files written to an S3-compatible bucket, served through CDN_BASE_URL

Validation is shared by both providers:
- per-file size limit (MAX_FILE_SIZE)  -> 413
- total size of one batch (MAX_TOTAL_SIZE)  -> 413
- number of files per review (MAX_FILES_PER_REVIEW)  -> 400
- MIME type allowlist (images and common video formats)  -> 400
"""

import abc
import logging
import secrets
import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from boto3 import client
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile

from app.config import get_settings
from app.exceptions import InvalidAttachmentError, PayloadTooLargeError, StorageError
from app.models.attachment import AttachmentType

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    # Images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    # Videos
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",  # AVI
    "video/x-ms-wmv",  # WMV
})


def _megabytes(size: int) -> str:
    return f"{size / 1024 / 1024:g}MB"


def _too_large(limit: int) -> PayloadTooLargeError:
    return PayloadTooLargeError(f"File size exceeds maximum allowed size of {_megabytes(limit)}")


def get_attachment_type(mime_type: str) -> AttachmentType:
    """Map a MIME type to PHOTO or VIDEO."""
    if mime_type.startswith("image/"):
        return AttachmentType.PHOTO
    if mime_type.startswith("video/"):
        return AttachmentType.VIDEO
    raise InvalidAttachmentError(f"Unsupported mime type: {mime_type}")


@dataclass
class IncomingFile:
    """A file received from the client, read into memory."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_upload(cls, upload: UploadFile, max_size: int) -> "IncomingFile":
        """
        Read an upload, giving up as soon as it exceeds max_size bytes.

        Raises:
            PayloadTooLargeError: The upload is larger than max_size
        """
        if upload.size is not None and upload.size > max_size:
            raise _too_large(max_size)

        content = upload.file.read(max_size + 1)
        if len(content) > max_size:
            raise _too_large(max_size)

        return cls(
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            content=content,
        )


@dataclass
class StoredFile:
    """Metadata of a stored file, shaped like a review attachment."""

    url: str
    filename: str
    mime_type: str
    size: int
    type: AttachmentType
    thumbnail_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FileStorage(metaclass=abc.ABCMeta):
    """Validation and naming shared by every storage provider."""

    def __init__(
        self,
        base_url: str,
        max_file_size: int,
        max_total_size: int,
        max_files: int,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_file_size = max_file_size
        self.max_total_size = max_total_size
        self.max_files = max_files

    @abc.abstractmethod
    def _save(self, name: str, content: bytes, mime_type: str) -> str:
        """Persist content under name and return its public URL."""

    @abc.abstractmethod
    def _remove(self, url: str) -> None:
        """Remove the file behind a public URL. Missing files are ignored."""

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------
    def validate_file(self, file: IncomingFile) -> None:
        if file.size > self.max_file_size:
            raise _too_large(self.max_file_size)

        if file.content_type not in ALLOWED_MIME_TYPES:
            raise InvalidAttachmentError(
                f"File type {file.content_type} is not allowed. "
                f"Allowed types: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
            )

    def validate_batch(self, files: list[IncomingFile]) -> None:
        if len(files) > self.max_files:
            raise InvalidAttachmentError(f"At most {self.max_files} files can be attached")

        total_size = sum(file.size for file in files)
        if total_size > self.max_total_size:
            raise PayloadTooLargeError(
                f"Total file size exceeds maximum allowed size of {_megabytes(self.max_total_size)}"
            )

    def read_uploads(self, uploads: list[UploadFile]) -> list[IncomingFile]:
        """
        Read a multipart batch within the configured limits.

        The file count is checked before anything is read, and reading
        stops at the first file that pushes the batch over a size limit.
        """
        if len(uploads) > self.max_files:
            raise InvalidAttachmentError(f"At most {self.max_files} files can be attached")

        files = []
        total_size = 0
        for upload in uploads:
            file = IncomingFile.from_upload(upload, self.max_file_size)
            total_size += file.size
            if total_size > self.max_total_size:
                raise PayloadTooLargeError(
                    f"Total file size exceeds maximum allowed size of {_megabytes(self.max_total_size)}"
                )
            files.append(file)
        return files

    def url_path(self, url: str) -> str | None:
        """Path of url below base_url, or None for files stored elsewhere."""
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix) or len(url) == len(prefix):
            return None
        return url[len(prefix):]

    def owns_url(self, url: str) -> bool:
        return self.url_path(url) is not None

    @staticmethod
    def generate_filename(original_name: str) -> str:
        """
        Build a unique storage name.

        "party photo.jpg" -> "party_photo-1718000000000-k3j9x0a1b2c3.jpg"
        """
        path = PurePosixPath(original_name.replace("\\", "/")).name or "upload"
        stem, suffix = PurePosixPath(path).stem, PurePosixPath(path).suffix
        stem = "_".join(stem.split()) or "upload"
        timestamp = int(time.time() * 1000)
        return f"{stem}-{timestamp}-{secrets.token_hex(6)}{suffix.lower()}"

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------
    def upload(self, file: IncomingFile) -> StoredFile:
        """Validate and store one file."""
        self.validate_file(file)
        attachment_type = get_attachment_type(file.content_type)

        name = self.generate_filename(file.filename)
        url = self._save(name, file.content, file.content_type)
        logger.info(f"Stored {file.filename} ({file.size} bytes) at {url}")

        return StoredFile(
            url=url,
            filename=file.filename,
            mime_type=file.content_type,
            size=file.size,
            type=attachment_type,
        )

    def upload_multiple(self, files: list[IncomingFile]) -> list[StoredFile]:
        """
        Validate a whole batch, then store each file.

        Nothing is stored if any file in the batch is invalid. When the
        provider fails midway, the files already stored are removed again.
        """
        self.validate_batch(files)
        for file in files:
            self.validate_file(file)

        stored: list[StoredFile] = []
        try:
            for file in files:
                stored.append(self.upload(file))
        except StorageError:
            self.discard(f.url for f in stored)
            raise
        return stored

    def delete(self, url: str) -> None:
        self._remove(url)
        logger.info(f"Deleted stored file {url}")

    def discard(self, urls: Iterable[str]) -> None:
        """Delete files best-effort; failures are logged and skipped."""
        for url in urls:
            try:
                self.delete(url)
            except (StorageError, OSError) as e:
                logger.warning(f"Failed to delete stored file {url}: {e}")


class LocalStorage(FileStorage):
    """Writes files into a local directory served under base_url."""

    def __init__(self, upload_dir: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.upload_dir = Path(upload_dir)

    def _save(self, name: str, content: bytes, mime_type: str) -> str:
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            (self.upload_dir / name).write_bytes(content)
        except OSError as e:
            raise StorageError(f"Failed to save file: {e}") from e
        return f"{self.base_url}/{name}"

    def _remove(self, url: str) -> None:
        name = self.url_path(url)
        if name is None or name != PurePosixPath(name).name:
            logger.warning(f"Not deleting {url}: not stored in {self.upload_dir}")
            return
        (self.upload_dir / name).unlink(missing_ok=True)


class S3Storage(FileStorage):
    """Writes files into an S3 bucket fronted by a CDN at base_url."""

    key_prefix = "reviews"

    def __init__(self, aws_client, bucket: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.aws_client = aws_client
        self.bucket = bucket

    def _save(self, name: str, content: bytes, mime_type: str) -> str:
        key = f"{self.key_prefix}/{name}"
        try:
            self.aws_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=mime_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError(f"Failed to upload file: {e}") from e
        return f"{self.base_url}/{key}"

    def _remove(self, url: str) -> None:
        key = self.url_path(url)
        if key is None:
            logger.warning(f"Not deleting {url}: not served from {self.base_url}")
            return
        try:
            self.aws_client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete file: {e}") from e


# =============================================================================
# Provider Selection
# =============================================================================

_storage: FileStorage | None = None


def create_s3_client():
    settings = get_settings()
    return client(
        "s3",
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=settings.s3_access_key_id,
        aws_secret_access_key=settings.s3_secret_access_key,
        config=Config(
            signature_version="s3v4",
            connect_timeout=5,
            retries={"max_attempts": 3},
        ),
        region_name=settings.s3_region,
    )


def create_storage() -> FileStorage:
    """Build the provider configured by STORAGE_PROVIDER."""
    settings = get_settings()
    limits = {
        "base_url": settings.cdn_base_url,
        "max_file_size": settings.max_file_size,
        "max_total_size": settings.max_total_size,
        "max_files": settings.max_files_per_review,
    }

    if settings.storage_provider == "s3":
        return S3Storage(create_s3_client(), settings.s3_bucket, **limits)
    return LocalStorage(settings.upload_dir, **limits)


def get_storage() -> FileStorage:
    """Get the configured storage provider (FastAPI dependency)."""
    global _storage
    if _storage is None:
        _storage = create_storage()
    return _storage
