from __future__ import annotations

from datetime import datetime

from .models import utcnow


class SystemClock:
    """Naive UTC wall clock, matching the timestamps stored by the models."""

    def now(self) -> datetime:
        return utcnow()
