"""Assignment write path and its audit trail."""

from .arbiter import AssignmentArbiter
from .audit import AuditTrail

__all__ = ["AssignmentArbiter", "AuditTrail"]
