"""
Domain errors raised by the deal workflow services.
Each carries an HTTP status and a stable code; `register_error_handlers` maps them to JSON responses.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DealWorkflowError(Exception):
    status_code = 400
    code = "DEAL_WORKFLOW_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class InvalidTransition(DealWorkflowError):
    """Requested stage is not in the current stage's allowed set."""

    status_code = 409
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, allowed: list[str] | None = None):
        self.current = current
        self.requested = requested
        self.allowed = allowed or []
        super().__init__(
            f"Invalid transition: {current} -> {requested}. "
            f"Allowed: {', '.join(self.allowed) if self.allowed else 'none'}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "currentStage": self.current,
            "requestedStage": self.requested,
            "allowedStages": self.allowed,
        }


class InvalidOfferInput(DealWorkflowError):
    status_code = 422
    code = "INVALID_OFFER_INPUT"

    def __init__(self, field: str, value: Any, reason: str = "must be positive"):
        self.field = field
        self.value = value
        super().__init__(f"{field} {reason} (got {value!r})")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field}


class IncompleteOffer(InvalidOfferInput):
    """approvedAmount, factorRate and termDays were not supplied together."""

    code = "INCOMPLETE_OFFER"

    def __init__(self, missing: list[str]):
        self.missing = missing
        DealWorkflowError.__init__(
            self,
            f"Offer fields must be set together; missing: {', '.join(missing)}",
        )
        self.field = missing[0] if missing else ""
        self.value = None


class NotFound(DealWorkflowError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class ConcurrentModification(DealWorkflowError):
    """The deal changed between read and write; nothing from this attempt was persisted."""

    status_code = 409
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, deal_id: str, expected_version: int | None = None, actual_version: int | None = None):
        self.deal_id = deal_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        detail = ""
        if expected_version is not None and actual_version is not None:
            detail = f" (expected version {expected_version}, found {actual_version})"
        super().__init__(f"Deal {deal_id} was modified concurrently{detail}")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DealWorkflowError)
    async def deal_workflow_error_handler(request: Request, exc: DealWorkflowError):
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
