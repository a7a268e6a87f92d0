from __future__ import annotations

import logging

from taskcadence.domain.entities import MaterializationRecord

logger = logging.getLogger("taskcadence.activity")


class LoggingActivitySink:
    """Hands "task materialized from schedule" facts to the activity log stream."""

    def record(self, record: MaterializationRecord) -> None:
        logger.info(
            "task_materialized schedule_id=%s task_id=%s occurred_at=%s manual=%s",
            record.schedule_id,
            record.task_id,
            record.occurrence_timestamp.isoformat(),
            record.manual,
        )
