from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ScheduleFilters:
    owner_id: str | None = None
    project_id: str | None = None
    workspace_id: str | None = None
    include_inactive: bool = True
