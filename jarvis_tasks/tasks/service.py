"""
任务依赖服务层

在 DependencyGraph 之上做任务存在性检查，并返回与 REST 接口一致的
JSON 结构（dependsOn / blockedBy / error / cycle）。HTTP 层只需把异常
映射为 404 / 400，其余异常统一报告为 500。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models import TaskRecord, TaskStatus
from .graph import DependencyGraph
from .store import DependencyStore


class TaskNotFoundError(LookupError):
    """引用的任务不存在"""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class DependencyConflictError(ValueError):
    """新依赖被拒绝（自依赖或成环）"""

    def __init__(self, error: str, cycle: Optional[List[str]] = None):
        super().__init__(error)
        self.error = error
        self.cycle = cycle

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.error}
        if self.cycle:
            data["cycle"] = self.cycle
        return data


class StatusBlockedError(ValueError):
    """状态变更被依赖关系阻止"""

    def __init__(self, reason: str, blocking_tasks: List[TaskRecord]):
        super().__init__(reason)
        self.reason = reason
        self.blocking_tasks = blocking_tasks


class DependencyService:
    """
    任务依赖 API

    Args:
        store: 存储句柄
        graph: 依赖图，默认基于同一个 store 创建
    """

    def __init__(self, store: DependencyStore, graph: Optional[DependencyGraph] = None):
        self._store = store
        self.graph = graph or DependencyGraph(store)

    def close(self) -> None:
        """关闭底层存储"""
        self._store.close()

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        with self._store.transaction() as tx:
            return tx.get_task(task_id)

    def _require(self, *task_ids: str) -> None:
        with self._store.transaction() as tx:
            for task_id in task_ids:
                if not tx.task_exists(task_id):
                    raise TaskNotFoundError(task_id)

    def _view(self, task_id: str) -> Dict[str, Any]:
        return {
            "taskId": task_id,
            "dependsOn": self.graph.get_dependencies(task_id),
            "blockedBy": self.graph.get_dependents(task_id),
        }

    def get(self, task_id: str) -> Dict[str, Any]:
        """任务的依赖与被依赖列表"""
        self._require(task_id)
        view = self._view(task_id)
        view["count"] = {
            "dependencies": len(view["dependsOn"]),
            "dependents": len(view["blockedBy"]),
        }
        return view

    def add(self, task_id: str, depends_on_id: Optional[str]) -> Dict[str, Any]:
        """
        添加依赖

        Raises:
            ValueError: 未提供 depends_on_id
            TaskNotFoundError: 任一任务不存在
            DependencyConflictError: 自依赖或会形成环
        """
        if not depends_on_id:
            raise ValueError("dependsOnId is required")
        self._require(task_id, depends_on_id)

        validation = self.graph.link(task_id, depends_on_id)
        if not validation.valid:
            raise DependencyConflictError(validation.error or "Invalid dependency", validation.cycle)

        view = self._view(task_id)
        view.update(dependsOnId=depends_on_id, message="Dependency added successfully")
        return view

    def remove(self, task_id: str, depends_on_id: Optional[str]) -> Dict[str, Any]:
        """删除依赖，依赖不存在时同样成功"""
        if not depends_on_id:
            raise ValueError("dependsOnId is required")

        self.graph.remove_dependency(task_id, depends_on_id)

        view = self._view(task_id)
        view.update(dependsOnId=depends_on_id, message="Dependency removed successfully")
        return view

    def create_task(self, task_id: str, title: str = "", status: TaskStatus = TaskStatus.TODO) -> TaskRecord:
        task = TaskRecord(id=task_id, title=title, status=status)
        with self._store.transaction(write=True) as tx:
            tx.save_task(task)
        return task

    def delete_task(self, task_id: str) -> bool:
        """删除任务，其依赖边随之级联删除"""
        with self._store.transaction(write=True) as tx:
            return tx.delete_task(task_id)

    def change_status(self, task_id: str, new_status: TaskStatus) -> TaskRecord:
        """
        变更任务状态

        Raises:
            TaskNotFoundError: 任务不存在
            StatusBlockedError: 依赖关系不允许此变更
        """
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        check = self.graph.can_change_status(
            task_id, TaskStatus(new_status), lookup=self.get_task, current_status=task.status
        )
        if not check.allowed:
            raise StatusBlockedError(check.reason or "Status change blocked", check.blocking_tasks)

        task.status = TaskStatus(new_status)
        with self._store.transaction(write=True) as tx:
            tx.save_task(task)
        return task
