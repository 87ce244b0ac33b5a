"""
日志配置模块

提供可配置的日志系统，支持：
- 控制台和文件输出
- 日志轮转
- 结构化 JSON 日志（附带任务与依赖字段）
"""

import logging
import logging.handlers
import json
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any


class LogLevel(Enum):
    """日志级别"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        """转换为 logging 模块的级别"""
        return getattr(logging, self.name)


@dataclass
class LoggingConfig:
    """日志配置"""
    level: LogLevel = LogLevel.INFO
    console_enabled: bool = True
    file_enabled: bool = False
    file_path: str = "data/jarvis-tasks.log"
    max_size_mb: int = 10
    backup_count: int = 3
    json_format: bool = False
    include_timestamp: bool = True


# 附加到 JSON 日志中的 extra 字段
EXTRA_FIELDS = ("task_id", "depends_on_id", "operation")


class JSONFormatter(logging.Formatter):
    """JSON 格式化器"""

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_record[name] = getattr(record, name)

        return json.dumps(log_record, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """带颜色的控制台格式化器"""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)
        # 不修改原 record，避免污染其他 handler
        original = record.levelname
        color = self.COLORS.get(record.levelno, self.RESET)
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class TasksLogger:
    """jarvis-tasks 日志管理器（单例）"""

    _instance: Optional["TasksLogger"] = None
    _logger: Optional[logging.Logger] = None

    def __new__(cls) -> "TasksLogger":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._logger is None:
            self._logger = logging.getLogger("jarvis_tasks")
            self._config: Optional[LoggingConfig] = None

    def configure(self, config: Optional[LoggingConfig] = None) -> None:
        """
        配置日志系统。

        Args:
            config: 日志配置，None 时使用默认配置
        """
        self._config = config or LoggingConfig()

        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()
        self._logger.setLevel(self._config.level.to_logging_level())

        if self._config.console_enabled:
            self._add_console_handler()

        if self._config.file_enabled:
            self._add_file_handler()

    def _add_console_handler(self) -> None:
        """添加控制台处理器"""
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(self._config.level.to_logging_level())

        if self._config.json_format:
            handler.setFormatter(JSONFormatter())
        else:
            fmt_parts = []
            if self._config.include_timestamp:
                fmt_parts.append("%(asctime)s")
            fmt_parts.extend(["%(levelname)s", "[%(name)s]", "%(message)s"])
            handler.setFormatter(ColoredFormatter(" ".join(fmt_parts), use_colors=sys.stderr.isatty()))

        self._logger.addHandler(handler)

    def _add_file_handler(self) -> None:
        """添加文件处理器（带轮转）"""
        log_path = Path(self._config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=self._config.max_size_mb * 1024 * 1024,
            backupCount=self._config.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(self._config.level.to_logging_level())

        if self._config.json_format:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

        self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        """获取 logger 实例"""
        if self._config is None:
            self.configure()
        return self._logger

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, extra=kwargs)

    def task_log(
        self,
        message: str,
        task_id: str,
        depends_on_id: Optional[str] = None,
        operation: Optional[str] = None,
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        """
        任务依赖相关日志。

        Args:
            message: 日志消息
            task_id: 任务 ID
            depends_on_id: 被依赖的任务 ID
            operation: 操作名 (link, unlink, ...)
            level: 日志级别
        """
        extra: Dict[str, Any] = {"task_id": task_id}
        if depends_on_id:
            extra["depends_on_id"] = depends_on_id
        if operation:
            extra["operation"] = operation

        self.logger.log(level.to_logging_level(), message, extra=extra)


def get_logger() -> TasksLogger:
    """获取日志管理器实例"""
    return TasksLogger()


def configure_logging(
    level: str = "info",
    console: bool = True,
    file: bool = False,
    file_path: str = "data/jarvis-tasks.log",
    json_format: bool = False,
) -> TasksLogger:
    """
    配置日志系统的便捷函数。

    Args:
        level: 日志级别 (debug, info, warning, error, critical)
        console: 是否输出到控制台
        file: 是否输出到文件
        file_path: 日志文件路径
        json_format: 是否使用 JSON 格式

    Returns:
        配置好的 logger 实例
    """
    config = LoggingConfig(
        level=LogLevel(level.lower()),
        console_enabled=console,
        file_enabled=file,
        file_path=file_path,
        json_format=json_format,
    )

    logger = get_logger()
    logger.configure(config)
    return logger
