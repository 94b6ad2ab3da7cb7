import logging
from typing import Any, Dict, Optional, Sequence

from fastapi import Request, status
from fastapi.responses import JSONResponse

log = logging.getLogger(__name__)


class QuoteLifecycleError(Exception):
    """Base for every failure the lifecycle engine reports to its caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Unexpected error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_payload(self) -> Dict[str, Any]:
        return {"detail": self.detail}


class Unauthenticated(QuoteLifecycleError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"


class Forbidden(QuoteLifecycleError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(QuoteLifecycleError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Quote not found."


class ValidationFailed(QuoteLifecycleError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request."

    def __init__(self, detail: Optional[str] = None, allowed: Optional[Sequence[str]] = None):
        super().__init__(detail)
        self.allowed = list(allowed) if allowed is not None else None

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.allowed is not None:
            payload["allowed"] = self.allowed
        return payload


class DomainRuleViolation(QuoteLifecycleError):
    """The input is well-formed but the quote's current state forbids the action."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "This action is not allowed for the quote in its current state."


class UpstreamUnavailable(QuoteLifecycleError):
    """The store or the AI model failed. Callers may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service temporarily unavailable. Please try again."


async def lifecycle_error_handler(request: Request, exc: QuoteLifecycleError) -> JSONResponse:
    if exc.status_code >= 500:
        log.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
