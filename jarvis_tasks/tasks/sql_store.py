"""SQLite SQLAlchemy store for the dependency graph."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, delete, event, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from ..models import DependencyEdge, TaskRecord, TaskStatus
from .schemas import Base, TaskDependencyRow, TaskRow
from .store import DependencyStore, StoreTransaction, utc_now


class _SQLTransaction(StoreTransaction):
    """Store operations bound to one SQLAlchemy session."""

    def __init__(self, session: Session):
        self._session = session

    def dependencies_of(self, task_id: str) -> List[str]:
        stmt = (
            select(TaskDependencyRow.depends_on_id)
            .where(TaskDependencyRow.task_id == task_id)
            .order_by(TaskDependencyRow.created_at, TaskDependencyRow.depends_on_id)
        )
        return list(self._session.scalars(stmt))

    def dependents_of(self, task_id: str) -> List[str]:
        stmt = (
            select(TaskDependencyRow.task_id)
            .where(TaskDependencyRow.depends_on_id == task_id)
            .order_by(TaskDependencyRow.created_at, TaskDependencyRow.task_id)
        )
        return list(self._session.scalars(stmt))

    def insert_edge(self, task_id: str, depends_on_id: str) -> bool:
        stmt = (
            sqlite_insert(TaskDependencyRow)
            .values(task_id=task_id, depends_on_id=depends_on_id, created_at=utc_now())
            .on_conflict_do_nothing(index_elements=["task_id", "depends_on_id"])
        )
        return self._session.execute(stmt).rowcount > 0

    def delete_edge(self, task_id: str, depends_on_id: str) -> bool:
        stmt = delete(TaskDependencyRow).where(
            TaskDependencyRow.task_id == task_id,
            TaskDependencyRow.depends_on_id == depends_on_id,
        )
        return self._session.execute(stmt).rowcount > 0

    def delete_edges_touching(self, task_id: str) -> int:
        stmt = delete(TaskDependencyRow).where(
            or_(TaskDependencyRow.task_id == task_id, TaskDependencyRow.depends_on_id == task_id)
        )
        return self._session.execute(stmt).rowcount

    def list_edges(self) -> List[DependencyEdge]:
        rows = self._session.scalars(
            select(TaskDependencyRow).order_by(TaskDependencyRow.created_at)
        )
        return [
            DependencyEdge(task_id=r.task_id, depends_on_id=r.depends_on_id, created_at=r.created_at)
            for r in rows
        ]

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        row = self._session.get(TaskRow, task_id)
        if row is None:
            return None
        return TaskRecord(id=row.id, title=row.title, status=TaskStatus(row.status))

    def save_task(self, task: TaskRecord) -> None:
        row = self._session.get(TaskRow, task.id)
        if row is None:
            self._session.add(TaskRow(id=task.id, title=task.title, status=task.status.value))
        else:
            row.title = task.title
            row.status = task.status.value
        self._session.flush()

    def delete_task(self, task_id: str) -> bool:
        # Foreign keys cascade too; deleting explicitly keeps the result independent of the pragma.
        self.delete_edges_touching(task_id)
        return self._session.execute(delete(TaskRow).where(TaskRow.id == task_id)).rowcount > 0


class SQLStore(DependencyStore):
    """
    Provides SQLAlchemy session management for SQLite persistence.

    Write transactions start with ``BEGIN IMMEDIATE`` so SQLite grants the
    reserved lock up front: a second writer blocks (up to ``busy_timeout_s``)
    until the first commits, and therefore validates against committed edges.
    """

    def __init__(self, db_path: Path | str, busy_timeout_s: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite+pysqlite:///{self.db_path}",
            connect_args={"timeout": busy_timeout_s, "check_same_thread": False},
        )
        self._install_pragmas()
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def _install_pragmas(self) -> None:
        # Take over transaction control from pysqlite so BEGIN can be issued explicitly.
        @event.listens_for(self.engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(self.engine, "begin")
        def _on_begin(conn):
            mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
            conn.exec_driver_sql(f"BEGIN {mode}")

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self, write: bool = False) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error."""
        bind = self.engine
        if write:
            bind = self.engine.execution_options(sqlite_begin="IMMEDIATE")
        sess = self._session_factory(bind=bind)
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    @contextmanager
    def transaction(self, write: bool = False) -> Iterator[StoreTransaction]:
        with self.session(write=write) as sess:
            yield _SQLTransaction(sess)

    def close(self) -> None:
        self.engine.dispose()
