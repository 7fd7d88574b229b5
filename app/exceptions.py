"""Domain exceptions for the review services.

Services raise these; app/main.py turns them into JSON responses using
the status code each class carries.
"""

from fastapi import status


class ReviewServiceError(Exception):
    """Base exception for all review service errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ReviewServiceError):
    """Event or review does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(ReviewServiceError):
    """User cannot see or modify this resource."""

    status_code = status.HTTP_403_FORBIDDEN


class DuplicateReviewError(ReviewServiceError):
    """User already reviewed this event."""
    pass


class DuplicateReportError(ReviewServiceError):
    """User already reported this review."""
    pass


class InvalidReviewStateError(ReviewServiceError):
    """Operation not allowed for the review's current status."""
    pass


class InvalidAttachmentError(ReviewServiceError):
    """Attachment has an unsupported type or too many files were sent."""
    pass


class PayloadTooLargeError(ReviewServiceError):
    """Uploaded file or batch exceeds the configured size limit."""

    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class StorageError(ReviewServiceError):
    """Storage provider failed to save a file."""

    status_code = status.HTTP_502_BAD_GATEWAY


class ConflictError(ReviewServiceError):
    """A concurrent write touched the same ledger row; the client may retry."""

    status_code = status.HTTP_409_CONFLICT
