"""Immediate driver matching endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import DispatchError
from ...models.domain import Actor
from ...persistence.base import DispatchStore
from ...persistence.factory import get_dispatch_store
from ...schemas.matching import MatchFoundResponse, MatchRequest, NoMatchResponse
from ...services.matching import find_best_driver
from ..deps import ROLE_ADMIN, ROLE_DRIVER, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/driver/matching", tags=["matching"])


@router.post(
    "/find",
    response_model=MatchFoundResponse | NoMatchResponse,
    status_code=status.HTTP_200_OK,
)
def find_driver(
    payload: MatchRequest,
    store: DispatchStore = Depends(get_dispatch_store),
    actor: Actor = Depends(require_roles(ROLE_DRIVER, ROLE_ADMIN)),
) -> MatchFoundResponse | NoMatchResponse:
    """Rank nearby drivers for an immediate pickup and pick the best one."""
    try:
        return find_best_driver(store, payload)
    except DispatchError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error matching driver for actor {actor.actor_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Driver matching failed. Please try again.",
        ) from exc
