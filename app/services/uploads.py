"""
Upload Ledger Service

Tracks which user stored which file, so review attachments can only point
at the author's own uploads:
- record_uploads: remember files just written to storage
- claim_uploads: turn attachment metadata into ReviewAttachment rows,
  refusing foreign, unknown or already attached files
- forget_uploads: drop ledger rows of deleted files

Functions flush but never commit.
"""

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.exceptions import InvalidAttachmentError
from app.models.attachment import ReviewAttachment
from app.models.upload import StoredUpload
from app.models.user import User
from app.schemas.review import AttachmentCreate
from app.services.storage import StoredFile

logger = logging.getLogger(__name__)


def record_uploads(db: Session, files: Sequence[StoredFile], owner: User) -> list[StoredUpload]:
    uploads = [
        StoredUpload(
            owner_id=owner.id,
            url=f.url,
            type=str(f.type),
            filename=f.filename,
            mime_type=f.mime_type,
            size=f.size,
            thumbnail_url=f.thumbnail_url,
        )
        for f in files
    ]
    db.add_all(uploads)
    db.flush()
    return uploads


def claim_uploads(
    db: Session,
    attachments: Sequence[AttachmentCreate],
    owner: User,
) -> list[ReviewAttachment]:
    """
    Build review attachments from the owner's uploads.

    The stored metadata wins over what the client sent; only the URL is
    used to find the upload. Upload rows are locked so two reviews cannot
    claim the same file concurrently.

    Raises:
        InvalidAttachmentError: A URL is repeated, was not uploaded by
            owner, or is already attached to a review
    """
    urls = [attachment.url for attachment in attachments]
    if not urls:
        return []
    if len(set(urls)) != len(urls):
        raise InvalidAttachmentError("The same file cannot be attached twice")

    uploads = {
        upload.url: upload
        for upload in db.execute(
            select(StoredUpload).where(StoredUpload.url.in_(urls)).with_for_update()
        ).scalars()
    }
    for url in urls:
        upload = uploads.get(url)
        if upload is None or upload.owner_id != owner.id:
            logger.warning(f"User {owner.id} tried to attach a file they did not upload: {url}")
            raise InvalidAttachmentError(f"Attachment {url} was not uploaded by you")

    attached = db.execute(
        select(ReviewAttachment.url).where(ReviewAttachment.url.in_(urls))
    ).scalars().first()
    if attached is not None:
        raise InvalidAttachmentError(f"Attachment {attached} is already used by another review")

    return [
        ReviewAttachment(
            type=uploads[url].type,
            url=url,
            thumbnail_url=uploads[url].thumbnail_url,
            filename=uploads[url].filename,
            mime_type=uploads[url].mime_type,
            size=uploads[url].size,
        )
        for url in urls
    ]


def forget_uploads(db: Session, urls: Iterable[str]) -> None:
    urls = list(urls)
    if urls:
        db.execute(delete(StoredUpload).where(StoredUpload.url.in_(urls)))
