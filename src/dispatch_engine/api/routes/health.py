"""Health endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from ...config import settings
from ...errors import DispatchError
from ...persistence.base import DispatchStore
from ...persistence.factory import get_dispatch_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/store", status_code=status.HTTP_200_OK)
def health_store(store: DispatchStore = Depends(get_dispatch_store)) -> dict:
    """Check that the dispatch store answers."""
    try:
        store.ping()
    except DispatchError as exc:
        logger.warning(f"Store health check failed: {exc}")
        return {
            "backend": settings.store_backend,
            "healthy": False,
            "error": str(exc),
        }
    return {
        "backend": settings.store_backend,
        "healthy": True,
        "sandbox": settings.store_backend == "memory",
        "schemaVersion": settings.store_schema_version,
    }
