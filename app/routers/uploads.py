"""
Uploads Router

Stores review photos and videos ahead of review creation.

Endpoints:
- POST /uploads/files - Upload up to MAX_FILES_PER_REVIEW files

The returned metadata is passed unchanged in the "attachments" list of
POST /events/{event_id}/reviews. Each file is recorded as owned by the
uploader and can be attached to one of their reviews only.
"""

import logging

from fastapi import APIRouter, File, Request, UploadFile, status

from app.config import get_settings
from app.dependencies import ActiveUser, DbSession, Storage
from app.schemas.review import AttachmentCreate, UploadResponse
from app.services.rate_limiter import limiter
from app.services.uploads import record_uploads

logger = logging.getLogger(__name__)

settings = get_settings()

router = APIRouter(
    prefix="/uploads",
    tags=["Uploads"],
    responses={
        400: {"description": "Unsupported file type or too many files"},
        413: {"description": "File or batch too large"},
    },
)


@router.post(
    "/files",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload review attachments",
    description="""
    Upload images (JPEG, PNG, GIF, WebP, SVG) and videos (MP4, WebM,
    QuickTime, AVI, WMV).

    The whole batch is validated before anything is stored.
    """,
)
@limiter.limit(settings.rate_limit_write)
def upload_files(
    request: Request,
    db: DbSession,
    current_user: ActiveUser,
    storage: Storage,
    files: list[UploadFile] = File(..., description="Files to upload"),
) -> UploadResponse:
    stored = storage.upload_multiple(storage.read_uploads(files))

    try:
        record_uploads(db, stored, current_user)
        db.commit()
    except Exception:
        storage.discard(f.url for f in stored)
        raise

    logger.info(f"User {current_user.id} uploaded {len(stored)} file(s)")

    return UploadResponse(files=[AttachmentCreate(**f.to_dict()) for f in stored])
