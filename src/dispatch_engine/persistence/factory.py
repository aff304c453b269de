"""Process-wide store selection."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..config import settings
from ..db.supabase import get_supabase_client
from .base import DispatchStore, resolve_store_layout
from .memory import InMemoryDispatchStore
from .supabase_store import SupabaseDispatchStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_dispatch_store() -> DispatchStore:
    """Build the configured store once; used as a FastAPI dependency."""

    if settings.store_backend == "memory":
        logger.warning("Using in-memory SANDBOX dispatch store; data is not persisted")
        if settings.sandbox_seed_file:
            return InMemoryDispatchStore.from_json(settings.sandbox_seed_file)
        return InMemoryDispatchStore()

    layout = resolve_store_layout(settings.store_schema_version)
    return SupabaseDispatchStore(get_supabase_client(), layout)
