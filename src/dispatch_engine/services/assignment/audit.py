"""Read side of the assignment ledger.

Audit rows are only ever created by the store as part of an
``AssignmentArbiter`` mutation; this module never writes.
"""

from __future__ import annotations

from typing import Optional

from ...models.domain import AssignmentAudit
from ...persistence.base import DispatchStore


class AuditTrail:
    def __init__(self, store: DispatchStore) -> None:
        self.store = store

    def history(self, trip_id: int) -> list[AssignmentAudit]:
        """Every assignment change for a trip, most recent first."""
        return sorted(
            self.store.list_audits(trip_id),
            key=lambda audit: (audit.created_at, audit.audit_id),
            reverse=True,
        )

    def latest(self, trip_id: int) -> Optional[AssignmentAudit]:
        history = self.history(trip_id)
        return history[0] if history else None
