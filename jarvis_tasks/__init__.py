"""Jarvis Tasks - task dependency graph with cycle-safe persistence."""
from .models import (
    TaskStatus,
    TaskRecord,
    DependencyEdge,
    DependencyValidation,
    StatusCheck,
    TasksConfig,
)
from .tasks import (
    DependencyGraph,
    DependencyError,
    DependencyService,
    MemoryStore,
    SQLStore,
)
from .core import load_config, build_service
from .logging import get_logger, configure_logging

__version__ = "1.0.0"
__all__ = [
    "TaskStatus",
    "TaskRecord",
    "DependencyEdge",
    "DependencyValidation",
    "StatusCheck",
    "TasksConfig",
    "DependencyGraph",
    "DependencyError",
    "DependencyService",
    "MemoryStore",
    "SQLStore",
    "load_config",
    "build_service",
    "get_logger",
    "configure_logging",
]
