"""
依赖边存储接口

DependencyGraph 只通过这里定义的事务接口读写依赖边，
具体后端（内存 / SQLite）由组合应用选择并负责生命周期。
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..models import DependencyEdge, TaskRecord


def utc_now() -> datetime:
    """当前 UTC 时间"""
    return datetime.now(timezone.utc)


class StoreTransaction(ABC):
    """
    单个事务内可见的存储操作。

    边操作供 DependencyGraph 使用；任务操作只供服务层做存在性检查和级联删除。
    """

    @abstractmethod
    def dependencies_of(self, task_id: str) -> List[str]:
        """task_id 直接依赖的任务（按 source 查边）"""

    @abstractmethod
    def dependents_of(self, task_id: str) -> List[str]:
        """直接依赖 task_id 的任务（按 target 查边）"""

    @abstractmethod
    def insert_edge(self, task_id: str, depends_on_id: str) -> bool:
        """插入边，已存在时不做任何事并返回 False"""

    @abstractmethod
    def delete_edge(self, task_id: str, depends_on_id: str) -> bool:
        """删除边，不存在时返回 False"""

    @abstractmethod
    def delete_edges_touching(self, task_id: str) -> int:
        """删除所有以 task_id 为端点的边，返回删除数量"""

    @abstractmethod
    def list_edges(self) -> List[DependencyEdge]:
        """全部边"""

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        """按 ID 获取任务"""

    @abstractmethod
    def save_task(self, task: TaskRecord) -> None:
        """新增或更新任务"""

    @abstractmethod
    def delete_task(self, task_id: str) -> bool:
        """删除任务及其所有依赖边"""

    def task_exists(self, task_id: str) -> bool:
        return self.get_task(task_id) is not None


class DependencyStore(ABC):
    """存储后端"""

    @abstractmethod
    def transaction(self, write: bool = False) -> AbstractContextManager[StoreTransaction]:
        """
        打开事务。

        Args:
            write: 为 True 时获取排他写锁，同一时刻只有一个写事务

        成功退出时提交，异常时回滚并重新抛出。
        """

    def close(self) -> None:
        """释放底层资源"""


class _MemoryTransaction(StoreTransaction):

    def __init__(self, store: "MemoryStore"):
        self._store = store

    def dependencies_of(self, task_id: str) -> List[str]:
        return list(self._store._forward.get(task_id, {}))

    def dependents_of(self, task_id: str) -> List[str]:
        return list(self._store._reverse.get(task_id, {}))

    def insert_edge(self, task_id: str, depends_on_id: str) -> bool:
        targets = self._store._forward.setdefault(task_id, {})
        if depends_on_id in targets:
            return False
        created_at = utc_now()
        targets[depends_on_id] = created_at
        self._store._reverse.setdefault(depends_on_id, {})[task_id] = created_at
        return True

    def delete_edge(self, task_id: str, depends_on_id: str) -> bool:
        targets = self._store._forward.get(task_id, {})
        if depends_on_id not in targets:
            return False
        del targets[depends_on_id]
        del self._store._reverse[depends_on_id][task_id]
        return True

    def delete_edges_touching(self, task_id: str) -> int:
        removed = 0
        for dep_id in self.dependencies_of(task_id):
            removed += self.delete_edge(task_id, dep_id)
        for dependent_id in self.dependents_of(task_id):
            removed += self.delete_edge(dependent_id, task_id)
        return removed

    def list_edges(self) -> List[DependencyEdge]:
        return [
            DependencyEdge(task_id=task_id, depends_on_id=dep_id, created_at=created_at)
            for task_id, targets in self._store._forward.items()
            for dep_id, created_at in targets.items()
        ]

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        task = self._store._tasks.get(task_id)
        return task.model_copy() if task else None

    def save_task(self, task: TaskRecord) -> None:
        self._store._tasks[task.id] = task.model_copy()

    def delete_task(self, task_id: str) -> bool:
        self.delete_edges_touching(task_id)
        return self._store._tasks.pop(task_id, None) is not None


class MemoryStore(DependencyStore):
    """
    内存存储

    所有事务（读和写）都持有同一把可重入锁，因此天然串行化。
    写事务在异常时恢复到进入前的状态。
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._forward: Dict[str, Dict[str, datetime]] = {}
        self._reverse: Dict[str, Dict[str, datetime]] = {}
        self._tasks: Dict[str, TaskRecord] = {}

    @contextmanager
    def transaction(self, write: bool = False) -> Iterator[StoreTransaction]:
        with self._lock:
            if not write:
                yield _MemoryTransaction(self)
                return
            saved = copy.deepcopy((self._forward, self._reverse, self._tasks))
            try:
                yield _MemoryTransaction(self)
            except BaseException:
                self._forward, self._reverse, self._tasks = saved
                raise
