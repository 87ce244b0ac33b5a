"""
测试 logging.py 日志配置模块
"""

import json
import logging

import pytest

from jarvis_tasks.logging import (
    LogLevel,
    LoggingConfig,
    TasksLogger,
    JSONFormatter,
    ColoredFormatter,
    get_logger,
    configure_logging,
)
from jarvis_tasks.tasks import DependencyGraph, MemoryStore


def _record(msg="Test message"):
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestLogLevel:

    def test_to_logging_level(self):
        assert LogLevel.DEBUG.to_logging_level() == logging.DEBUG
        assert LogLevel.WARNING.to_logging_level() == logging.WARNING
        assert LogLevel.CRITICAL.to_logging_level() == logging.CRITICAL


class TestFormatters:

    def test_json_basic_record(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert "timestamp" in data
        assert data["level"] == "INFO"
        assert data["message"] == "Test message"

    def test_json_dependency_fields(self):
        record = _record("dependency linked")
        record.task_id = "task-2"
        record.depends_on_id = "task-1"
        record.operation = "link"

        data = json.loads(JSONFormatter().format(record))
        assert data["task_id"] == "task-2"
        assert data["depends_on_id"] == "task-1"
        assert data["operation"] == "link"

    def test_colored(self):
        result = ColoredFormatter("%(levelname)s %(message)s", use_colors=True).format(_record())
        assert "\033[" in result

    def test_colored_leaves_record_untouched(self):
        record = _record()
        ColoredFormatter("%(levelname)s", use_colors=True).format(record)
        assert record.levelname == "INFO"

    def test_plain(self):
        result = ColoredFormatter("%(levelname)s %(message)s", use_colors=False).format(_record())
        assert "\033[" not in result


class TestTasksLogger:

    def test_singleton(self):
        assert TasksLogger() is TasksLogger()
        assert get_logger() is TasksLogger()

    def test_configure_with_custom_config(self):
        logger = get_logger()
        logger.configure(LoggingConfig(level=LogLevel.DEBUG, console_enabled=False))
        assert logger._config.level == LogLevel.DEBUG
        assert logger.logger.level == logging.DEBUG

    def test_graph_logs_rejections(self, caplog):
        get_logger().configure(LoggingConfig(level=LogLevel.DEBUG, console_enabled=False))
        graph = DependencyGraph(MemoryStore())
        graph.link("b", "a")

        with caplog.at_level(logging.INFO, logger="jarvis_tasks"):
            graph.link("a", "b")

        rejected = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(rejected) == 1
        assert rejected[0].task_id == "a"
        assert rejected[0].depends_on_id == "b"
        assert "circular reference" in rejected[0].getMessage()


class TestFileLogging:

    def test_file_handler_writes_json(self, temp_dir):
        log_path = temp_dir / "logs" / "tasks.log"
        logger = configure_logging(
            level="debug", console=False, file=True, file_path=str(log_path), json_format=True
        )
        logger.task_log("dependency added", "task-2", "task-1", operation="add")
        for handler in logger.logger.handlers:
            handler.flush()

        data = json.loads(log_path.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert data["message"] == "dependency added"
        assert data["task_id"] == "task-2"

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            configure_logging(level="invalid")
