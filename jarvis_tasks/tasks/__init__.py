"""
任务依赖管理

提供依赖图、存储后端和服务层。
"""

from .graph import DependencyGraph, DependencyError
from .store import DependencyStore, StoreTransaction, MemoryStore
from .sql_store import SQLStore
from .service import (
    DependencyService,
    TaskNotFoundError,
    DependencyConflictError,
    StatusBlockedError,
)

__all__ = [
    "DependencyGraph",
    "DependencyError",
    "DependencyStore",
    "StoreTransaction",
    "MemoryStore",
    "SQLStore",
    "DependencyService",
    "TaskNotFoundError",
    "DependencyConflictError",
    "StatusBlockedError",
]
