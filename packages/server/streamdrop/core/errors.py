"""
Domain error hierarchy.

Services raise these instead of HTTP exceptions so they can run outside a
request; the app factory maps them to JSON error bodies.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from streamdrop_shared.schemas.common import ErrorBody, ErrorResponse


class DomainError(Exception):
    """Base class for recoverable business-rule failures."""

    status_code: int = 422
    code: str = "domain_error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.code.replace("_", " ")
        super().__init__(self.detail)


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"


class DuplicateSiretError(ConflictError):
    code = "duplicate_siret"


class DuplicateSubscriptionError(ConflictError):
    code = "duplicate_subscription"


class SubscriptionInUseError(ConflictError):
    code = "subscription_in_use"


class StreamInUseError(ConflictError):
    code = "stream_in_use"


class InvalidPermissionsError(DomainError):
    code = "invalid_permissions"


class InvalidCriteriaError(DomainError):
    """Wraps a delivery-criteria structural error for the API layer."""

    code = "invalid_delivery_criteria"

    def __init__(self, detail: Optional[str] = None, criteria_code: Optional[str] = None) -> None:
        super().__init__(detail)
        self.criteria_code = criteria_code


# ---------------------------------------------------------------------------
# Package lifecycle
# ---------------------------------------------------------------------------


class PackageStateError(ConflictError):
    code = "invalid_state"


class PackageNotDraftError(PackageStateError):
    code = "not_draft"


class PackageNotTransmittedError(PackageStateError):
    code = "not_transmitted"


class PackageNotDestroyableError(PackageStateError):
    code = "not_destroyable"


class IncompleteAttachmentsError(DomainError):
    code = "no_completed_attachments"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorBody(code=exc.code, detail=exc.detail)).model_dump(),
    )
