"""Route group exports."""

from . import health, matching, scheduled_trips

__all__ = ["health", "matching", "scheduled_trips"]
