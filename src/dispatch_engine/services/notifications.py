"""Driver notification channel used after a committed assignment change."""

from __future__ import annotations

import logging
from typing import Protocol

from ..models.domain import AssignmentAudit, ScheduledTrip

logger = logging.getLogger(__name__)


class DriverNotifier(Protocol):
    def driver_assigned(self, trip: ScheduledTrip, driver_id: int, audit: AssignmentAudit) -> None: ...

    def driver_unassigned(self, trip: ScheduledTrip, driver_id: int, audit: AssignmentAudit) -> None: ...


class LoggingNotifier:
    """Default channel: records the notification in the service log only."""

    def driver_assigned(self, trip: ScheduledTrip, driver_id: int, audit: AssignmentAudit) -> None:
        logger.info(f"Notify driver {driver_id}: assigned to scheduled trip {trip.trip_id}")

    def driver_unassigned(self, trip: ScheduledTrip, driver_id: int, audit: AssignmentAudit) -> None:
        logger.info(f"Notify driver {driver_id}: removed from scheduled trip {trip.trip_id}")
