"""Error taxonomy shared by services and routes.

Every error is an ``HTTPException`` so services can raise them directly and
FastAPI renders the status code without extra handlers.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class ReviewError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail, headers=headers)


class Unauthorized(ReviewError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ReviewError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not authorized"


class NotFound(ReviewError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Expired(ReviewError):
    status_code = status.HTTP_410_GONE
    default_detail = "This review link has expired"


class Conflict(ReviewError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflicting update, retry"


class PayloadTooLarge(ReviewError):
    status_code = 413
    default_detail = "File size exceeds limit"


class ValidationError(ReviewError):
    status_code = 422
    default_detail = "Invalid request"


class UpstreamUnavailable(ReviewError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Upstream service unavailable"


class AIUnavailable(UpstreamUnavailable):
    default_detail = "AI summarization unavailable"
