"""Type-safe models for the dependency graph and its configuration."""
from __future__ import annotations
from enum import Enum
from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    BACKLOG = "backlog"
    PLANNING = "planning"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


# Moving a task into one of these never requires its dependencies to be done.
BACKWARD_STATUSES = frozenset({TaskStatus.BACKLOG, TaskStatus.PLANNING, TaskStatus.TODO})


class TaskRecord(BaseModel):
    """Minimal view of a task as seen by the dependency layer."""
    id: str
    title: str = ""
    status: TaskStatus = TaskStatus.TODO

    @property
    def label(self) -> str:
        return self.title or self.id


class DependencyEdge(BaseModel):
    """A persisted "task_id depends on depends_on_id" edge."""
    task_id: str
    depends_on_id: str
    created_at: datetime


class DependencyValidation(BaseModel):
    """Outcome of checking a prospective edge. Never raised, always returned."""
    valid: bool
    error: str | None = None
    cycle: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class StatusCheck(BaseModel):
    """Whether a task may move to a new status given its dependencies."""
    allowed: bool
    reason: str | None = None
    blocking_tasks: list[TaskRecord] = []

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"allowed": self.allowed}
        if self.reason:
            data["reason"] = self.reason
        if self.blocking_tasks:
            data["blockingTasks"] = [t.model_dump(mode="json") for t in self.blocking_tasks]
        return data


class TasksConfig(BaseModel):
    """Repo-level configuration (.jarvisrc)."""
    database_path: str = "data/jarvis-tasks.db"
    log_level: str = "info"
    log_file: str | None = None
    json_logs: bool = False
    busy_timeout_s: float = Field(default=5.0, gt=0)

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        v = v.lower()
        if v not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError(f"unknown log level: {v}")
        return v
