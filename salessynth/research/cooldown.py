"""
Per-source cooldown gate.

A source is skipped for a (client, user) pair while its last attempt is
younger than the window. Every attempt counts, including ones that found
nothing, so a source that currently returns nothing is not hammered.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from salessynth.models import ResearchRecord, ResearchSource
from salessynth.utils import ensure_utc, utc_now


class CooldownGate:
    """Decides whether a source may be queried again.

    Args:
        window: Minimum time between two attempts of the same source.
        clock: Returns the current UTC time (tests inject a fake).
    """

    def __init__(
        self,
        window: timedelta = timedelta(hours=12),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.window = window
        self._clock = clock

    def is_active(self, last_updated: Optional[datetime]) -> bool:
        """``True`` while *last_updated* is inside the window."""
        if last_updated is None:
            return False
        return self._clock() - ensure_utc(last_updated) < self.window

    def remaining(self, last_updated: Optional[datetime]) -> timedelta:
        if not self.is_active(last_updated):
            return timedelta(0)
        return self.window - (self._clock() - ensure_utc(last_updated))

    def should_fetch(
        self, record: Optional[ResearchRecord], source: ResearchSource
    ) -> bool:
        """A missing record or missing timestamp always allows a fetch."""
        if record is None:
            return True
        return not self.is_active(record.last_updated_for(source))
