"""Health check endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

import speechbridge

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Health check do runtime (liveness) com o provider configurado."""
    response: dict[str, Any] = {
        "status": "ok",
        "version": speechbridge.__version__,
    }

    config = getattr(request.app.state, "config", None)
    if config is not None:
        response["provider"] = config.provider

    return response
