"""
并发添加互相成环的依赖时，恰好一个成功
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from jarvis_tasks.models import TaskRecord
from jarvis_tasks.tasks import DependencyGraph, SQLStore


def _race(graph_a: DependencyGraph, graph_b: DependencyGraph, a: str, b: str):
    barrier = threading.Barrier(2)

    def attempt(graph, task_id, depends_on_id):
        barrier.wait()
        return graph.link(task_id, depends_on_id)

    with ThreadPoolExecutor(max_workers=2) as pool:
        first = pool.submit(attempt, graph_a, a, b)
        second = pool.submit(attempt, graph_b, b, a)
        return first.result(), second.result()


class TestConcurrentLink:

    @pytest.mark.parametrize("round_no", range(5))
    def test_shared_graph(self, graph, make_tasks, round_no):
        make_tasks("a", "b")
        results = _race(graph, graph, "a", "b")

        assert sorted(r.valid for r in results) == [False, True]
        assert graph.find_cycle() is None

    @pytest.mark.parametrize("round_no", range(5))
    def test_separate_stores_on_same_database(self, temp_dir, round_no):
        """两个独立的 engine，只依靠 SQLite 写事务串行化"""
        path = temp_dir / "shared.db"
        store_a = SQLStore(path)
        store_a.create_all()
        store_b = SQLStore(path)
        try:
            with store_a.transaction(write=True) as tx:
                for task_id in ("a", "b", "c"):
                    tx.save_task(TaskRecord(id=task_id))
            graph_a, graph_b = DependencyGraph(store_a), DependencyGraph(store_b)
            graph_a.link("b", "c")

            # 已有 b→c，再让 a、b 互相竞争
            results = _race(graph_a, graph_b, "a", "b")
            assert sorted(r.valid for r in results) == [False, True]

            results = _race(graph_a, graph_b, "c", "a")
            assert sorted(r.valid for r in results) == [False, True]
            assert graph_a.find_cycle() is None
            assert graph_b.find_cycle() is None
        finally:
            store_a.close()
            store_b.close()
