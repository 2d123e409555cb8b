# app/api/error_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import NegotiationError

logger = logging.getLogger(__name__)


async def negotiation_error_handler(request: Request, exc: NegotiationError) -> JSONResponse:
    logger.info(
        "request rejected",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "error": exc.kind,
            "detail": exc.message,
        },
    )
    body = {"detail": exc.message, "error": exc.kind}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NegotiationError, negotiation_error_handler)
