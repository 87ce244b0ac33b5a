"""SQLAlchemy schemas for tasks and dependency edges."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .store import utc_now


class Base(DeclarativeBase):
    """Declarative base."""


class TaskRow(Base):
    """Task table. Only the columns the dependency layer reads."""

    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(32), default="todo")


class TaskDependencyRow(Base):
    """Junction table: task_id depends on depends_on_id."""

    __tablename__ = "task_dependencies"
    __table_args__ = (
        Index("idx_task_dependencies_task_id", "task_id"),
        Index("idx_task_dependencies_depends_on_id", "depends_on_id"),
    )

    task_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True
    )
    depends_on_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
