# app/core/errors.py
from __future__ import annotations

from typing import Optional


class NegotiationError(Exception):
    """
    Base class for every failure raised by the negotiation services.
    `status_code` is the HTTP status the API layer answers with.
    """

    status_code: int = 400
    kind: str = "NegotiationError"

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(NegotiationError):
    status_code = 404
    kind = "NotFound"


class ForbiddenError(NegotiationError):
    status_code = 403
    kind = "Forbidden"


class InvalidStateError(NegotiationError):
    status_code = 409
    kind = "InvalidState"


class ExpiredError(NegotiationError):
    status_code = 410
    kind = "Expired"


class ConflictError(NegotiationError):
    status_code = 409
    kind = "Conflict"


class InvalidArgumentError(NegotiationError):
    status_code = 422
    kind = "InvalidArgument"


class LimitExceededError(NegotiationError):
    status_code = 429
    kind = "LimitExceeded"
