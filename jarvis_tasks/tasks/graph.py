"""
任务依赖图

维护 "task_id 依赖 depends_on_id" 的有向边集合，保证全图无环，
并回答正向（依赖）与反向（被依赖）邻接查询。

每个操作都重新读取存储中的当前边集合，不跨调用缓存。
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Dict, List, Optional

from ..logging import LogLevel, get_logger
from ..models import (
    BACKWARD_STATUSES,
    DependencyValidation,
    StatusCheck,
    TaskRecord,
    TaskStatus,
)
from .store import DependencyStore, StoreTransaction

SELF_DEPENDENCY_ERROR = "A task cannot depend on itself"
CYCLE_ERROR = "This dependency would create a circular reference"


class DependencyError(Exception):
    """持久化的依赖图本身已损坏（存在环）"""
    pass


class DependencyGraph:
    """
    依赖图管理器

    支持功能:
    - 正向/反向邻接查询
    - 添加前的环检测（返回环路径）
    - 原子的 "验证 + 插入"（link）
    - 状态变更门禁、依赖深度、波次计算

    Args:
        store: 存储句柄，由组合应用打开和关闭
    """

    def __init__(self, store: DependencyStore):
        self._store = store
        self._write_lock = threading.Lock()
        self._log = get_logger()

    def get_dependencies(self, task_id: str) -> List[str]:
        """task_id 直接依赖的任务；未知 ID 返回空列表"""
        with self._store.transaction() as tx:
            return tx.dependencies_of(task_id)

    def get_dependents(self, task_id: str) -> List[str]:
        """直接依赖 task_id 的任务（blockedBy 视图）"""
        with self._store.transaction() as tx:
            return tx.dependents_of(task_id)

    def validate_dependency(self, task_id: str, depends_on_id: str) -> DependencyValidation:
        """
        检查添加 task_id -> depends_on_id 是否安全。

        Returns:
            DependencyValidation；验证失败是正常结果，不抛异常
        """
        with self._store.transaction() as tx:
            return self._validate(tx, task_id, depends_on_id)

    def add_dependency(self, task_id: str, depends_on_id: str) -> bool:
        """
        持久化边，不重新验证。调用方必须先 validate_dependency，
        或直接使用 link。

        Returns:
            新插入返回 True，边已存在返回 False
        """
        with self._write_lock, self._store.transaction(write=True) as tx:
            inserted = tx.insert_edge(task_id, depends_on_id)
        if inserted:
            self._log.task_log("dependency added", task_id, depends_on_id, operation="add")
        return inserted

    def remove_dependency(self, task_id: str, depends_on_id: str) -> bool:
        """删除边；不存在时为空操作，返回 False"""
        with self._write_lock, self._store.transaction(write=True) as tx:
            removed = tx.delete_edge(task_id, depends_on_id)
        if removed:
            self._log.task_log("dependency removed", task_id, depends_on_id, operation="remove")
        return removed

    def link(self, task_id: str, depends_on_id: str) -> DependencyValidation:
        """
        在同一个写事务中验证并插入边。

        进程内由 _write_lock 串行化，跨进程由存储的排他写事务串行化，
        所以两个互相成环的并发请求只会有一个成功。
        """
        with self._write_lock, self._store.transaction(write=True) as tx:
            validation = self._validate(tx, task_id, depends_on_id)
            if validation.valid:
                tx.insert_edge(task_id, depends_on_id)

        if validation.valid:
            self._log.task_log("dependency linked", task_id, depends_on_id, operation="link")
        else:
            self._log.task_log(
                f"dependency rejected: {validation.error}",
                task_id,
                depends_on_id,
                operation="link",
                level=LogLevel.WARNING,
            )
        return validation

    def remove_task(self, task_id: str) -> int:
        """删除所有以 task_id 为端点的边，返回删除数量"""
        with self._write_lock, self._store.transaction(write=True) as tx:
            return tx.delete_edges_touching(task_id)

    def _validate(self, tx: StoreTransaction, task_id: str, depends_on_id: str) -> DependencyValidation:
        if task_id == depends_on_id:
            return DependencyValidation(valid=False, error=SELF_DEPENDENCY_ERROR)

        path = self._find_path(tx, depends_on_id, task_id)
        if path is not None:
            return DependencyValidation(valid=False, error=CYCLE_ERROR, cycle=path)

        return DependencyValidation(valid=True)

    @staticmethod
    def _find_path(tx: StoreTransaction, start: str, target: str) -> Optional[List[str]]:
        """从 start 沿依赖边 BFS 到 target，返回 [start, ..., target] 或 None"""
        parents: Dict[str, Optional[str]] = {start: None}
        queue = deque([start])

        while queue:
            current = queue.popleft()
            if current == target:
                path = []
                node: Optional[str] = current
                while node is not None:
                    path.append(node)
                    node = parents[node]
                path.reverse()
                return path

            for dep_id in tx.dependencies_of(current):
                if dep_id not in parents:
                    parents[dep_id] = current
                    queue.append(dep_id)

        return None

    def can_change_status(
        self,
        task_id: str,
        new_status: TaskStatus,
        lookup: Callable[[str], Optional[TaskRecord]],
        current_status: Optional[TaskStatus] = None,
    ) -> StatusCheck:
        """
        检查任务能否变更到 new_status。

        - 离开 done 时，不能有已完成的下游任务
        - 回退到 backlog/planning/todo 不需要依赖完成
        - 其他前进状态要求所有直接依赖都已 done

        Args:
            task_id: 任务 ID
            new_status: 目标状态
            lookup: 按 ID 取任务的函数，未知 ID 返回 None
            current_status: 当前状态
        """
        new_status = TaskStatus(new_status)

        if current_status == TaskStatus.DONE and new_status != TaskStatus.DONE:
            done_dependents = [
                t for t in (lookup(d) for d in self.get_dependents(task_id))
                if t is not None and t.status == TaskStatus.DONE
            ]
            if done_dependents:
                return StatusCheck(
                    allowed=False,
                    reason="Cannot uncomplete task - other tasks depend on it",
                    blocking_tasks=done_dependents,
                )

        if new_status in BACKWARD_STATUSES:
            return StatusCheck(allowed=True)

        incomplete: List[TaskRecord] = []
        for dep_id in self.get_dependencies(task_id):
            dep = lookup(dep_id)
            if dep is None:
                incomplete.append(TaskRecord(id=dep_id))
            elif dep.status != TaskStatus.DONE:
                incomplete.append(dep)

        if incomplete:
            names = ", ".join(t.label for t in incomplete)
            return StatusCheck(
                allowed=False,
                reason=f"Blocked by incomplete dependencies: {names}",
                blocking_tasks=incomplete,
            )

        return StatusCheck(allowed=True)

    def task_depth(self, task_id: str) -> int:
        """依赖链深度：无依赖为 0，否则为最深依赖 + 1"""
        memo: Dict[str, int] = {}

        with self._store.transaction() as tx:
            # 后序迭代，避免长链递归过深
            stack = [(task_id, False)]
            on_path = set()
            while stack:
                current, expanded = stack.pop()
                if current in memo:
                    continue
                deps = tx.dependencies_of(current)
                if expanded:
                    on_path.discard(current)
                    memo[current] = max((memo[d] + 1 for d in deps), default=0)
                    continue
                if current in on_path:
                    raise DependencyError(f"存在循环依赖，经过 {current}")
                on_path.add(current)
                stack.append((current, True))
                stack.extend((d, False) for d in deps if d not in memo)

        return memo[task_id]

    def compute_waves(self) -> List[List[str]]:
        """
        计算波次（分层拓扑序）

        同一波次内的任务互不依赖；第 0 波是不依赖任何任务的节点。

        Raises:
            DependencyError: 持久化的边集合存在环
        """
        with self._store.transaction() as tx:
            edges = tx.list_edges()

        dependencies: Dict[str, set] = {}
        for edge in edges:
            dependencies.setdefault(edge.task_id, set()).add(edge.depends_on_id)
            dependencies.setdefault(edge.depends_on_id, set())

        waves: List[List[str]] = []
        remaining = set(dependencies)
        completed: set = set()

        while remaining:
            current_wave = sorted(t for t in remaining if dependencies[t] <= completed)
            if not current_wave:
                raise DependencyError("存在循环依赖")
            completed.update(current_wave)
            remaining.difference_update(current_wave)
            waves.append(current_wave)

        return waves

    def find_cycle(self) -> Optional[List[str]]:
        """
        全图环检测（审计用）

        Returns:
            闭合的环路径 [a, b, ..., a]，无环返回 None
        """
        with self._store.transaction() as tx:
            edges = tx.list_edges()

        adjacency: Dict[str, List[str]] = {}
        for edge in edges:
            adjacency.setdefault(edge.task_id, []).append(edge.depends_on_id)

        visited: set = set()
        for root in adjacency:
            if root in visited:
                continue
            path: List[str] = []
            on_path: Dict[str, int] = {}
            stack = [(root, iter(adjacency.get(root, [])))]
            path.append(root)
            on_path[root] = 0
            visited.add(root)
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    path.pop()
                    del on_path[node]
                    continue
                if child in on_path:
                    return path[on_path[child]:] + [child]
                if child not in visited:
                    visited.add(child)
                    on_path[child] = len(path)
                    path.append(child)
                    stack.append((child, iter(adjacency.get(child, []))))

        return None
