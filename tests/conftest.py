"""
jarvis-tasks 测试共享 fixtures
"""

import shutil
import tempfile
from pathlib import Path

import pytest
from click.testing import CliRunner

from jarvis_tasks.logging import LoggingConfig, LogLevel, get_logger
from jarvis_tasks.models import TaskStatus
from jarvis_tasks.tasks import DependencyService, MemoryStore, SQLStore


@pytest.fixture(autouse=True)
def quiet_logging():
    """测试期间只保留 ERROR 级别日志，不写文件"""
    get_logger().configure(
        LoggingConfig(level=LogLevel.ERROR, console_enabled=True, file_enabled=False)
    )
    yield


@pytest.fixture
def runner():
    """Click CLI 测试运行器"""
    return CliRunner()


@pytest.fixture
def temp_dir():
    """临时目录 fixture"""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sql_store(temp_dir):
    """基于临时 SQLite 文件的存储"""
    store = SQLStore(temp_dir / "jarvis-tasks.db")
    store.create_all()
    yield store
    store.close()


@pytest.fixture(params=["memory", "sql"])
def store(request, temp_dir):
    """两种后端各跑一遍"""
    if request.param == "memory":
        yield MemoryStore()
        return
    backend = SQLStore(temp_dir / "jarvis-tasks.db")
    backend.create_all()
    yield backend
    backend.close()


@pytest.fixture
def service(store):
    return DependencyService(store)


@pytest.fixture
def graph(service):
    return service.graph


@pytest.fixture
def make_tasks(service):
    """任务工厂：make_tasks("task-1", "task-2", ...)，SQL 后端的外键需要任务先存在"""
    def _factory(*task_ids: str, status: TaskStatus = TaskStatus.TODO):
        return [service.create_task(task_id, title=task_id.upper(), status=status) for task_id in task_ids]
    return _factory


@pytest.fixture
def add_edges(graph):
    """按 (task_id, depends_on_id) 批量加边，每条都先验证"""
    def _add(*edges):
        for task_id, depends_on_id in edges:
            result = graph.link(task_id, depends_on_id)
            assert result.valid, result.error
    return _add
