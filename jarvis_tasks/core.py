"""Configuration loading and store composition."""
from __future__ import annotations
import json
from pathlib import Path

from .logging import TasksLogger, configure_logging
from .models import TasksConfig
from .tasks import DependencyService, SQLStore

RC_FILE = ".jarvisrc"


def load_config(repo: Path) -> TasksConfig:
    """Load config from .jarvisrc or defaults."""
    rc_file = repo / RC_FILE
    if rc_file.exists():
        data = json.loads(rc_file.read_text(encoding="utf-8"))
        return TasksConfig(**data)
    return TasksConfig()


def init_logging(config: TasksConfig, repo: Path) -> TasksLogger:
    """Apply the logging section of a config."""
    log_file = config.log_file
    return configure_logging(
        level=config.log_level,
        file=log_file is not None,
        file_path=str(repo / log_file) if log_file else "data/jarvis-tasks.log",
        json_format=config.json_logs,
    )


def open_store(config: TasksConfig, repo: Path) -> SQLStore:
    """Open (and create if needed) the SQLite store named by the config."""
    db_path = Path(config.database_path)
    if not db_path.is_absolute():
        db_path = repo / db_path
    store = SQLStore(db_path, busy_timeout_s=config.busy_timeout_s)
    store.create_all()
    return store


def build_service(config: TasksConfig, repo: Path) -> DependencyService:
    """Compose store + graph + service. The caller owns closing the store."""
    return DependencyService(open_store(config, repo))
