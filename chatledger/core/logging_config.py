"""Structured logging setup.

Provides:
- JSON lines log records with OpenTelemetry trace/span identifiers
- Config-derived log level
- File output (project_root/logs/app.jsonl) with APP_LOG_DIR override
- Plain console output in development
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider

_EXCLUDED_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module", "lineno",
    "funcName", "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
    "process", "exc_info", "exc_text", "stack_info", "getMessage", "taskName",
}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        span = trace.get_current_span()
        trace_id = span_id = None
        if span and span.is_recording():
            sc = span.get_span_context()
            if sc.is_valid:
                trace_id = f"{sc.trace_id:032x}"
                span_id = f"{sc.span_id:016x}"

        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process_id": os.getpid(),
        }
        if trace_id:
            entry["trace_id"] = trace_id
        if span_id:
            entry["span_id"] = span_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for k, v in record.__dict__.items():
            if k not in _EXCLUDED_ATTRS:
                entry[f"extra_{k}"] = v
        return json.dumps(entry, default=str)


class LoggingConfig:
    """Configure the tracer provider and root logging handlers."""

    def __init__(
        self,
        service_name: str = "chatledger",
        service_version: str = "0.1.0",
        log_level: str = "INFO",
        log_dir: Optional[str] = None,
        development: bool = False,
    ) -> None:
        self.service_name = service_name
        self.service_version = service_version
        self.is_development = development
        self.log_level = self._parse_level(log_level)
        if log_dir:
            self.logs_dir = Path(log_dir)
        else:
            # chatledger/core/logging_config.py -> project root is 2 levels up
            self.logs_dir = Path(__file__).resolve().parents[2] / "logs"
        self.log_file = self.logs_dir / "app.jsonl"

    @classmethod
    def from_settings(cls, settings, service_version: str = "0.1.0") -> "LoggingConfig":
        return cls(
            service_name=settings.app_name,
            service_version=service_version,
            log_level=settings.log_level,
            log_dir=settings.app_log_dir,
            development=settings.debug_mode
            or settings.environment.lower() in {"dev", "development"},
        )

    @staticmethod
    def _parse_level(level_name: str) -> int:
        level = getattr(logging, (level_name or "INFO").upper(), None)
        return level if isinstance(level, int) else logging.INFO

    def setup(self) -> None:
        self._setup_telemetry()
        self._setup_logging()

    def _setup_telemetry(self) -> None:
        resource = Resource.create(
            {
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: self.service_version,
                "environment": "development" if self.is_development else "production",
            }
        )
        trace.set_tracer_provider(TracerProvider(resource=resource))

    def _setup_logging(self) -> None:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        root = logging.getLogger()
        for h in root.handlers[:]:
            root.removeHandler(h)

        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(self.log_level)
        root.addHandler(file_handler)
        root.setLevel(self.log_level)

        if self.is_development:
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            console.setLevel(self.log_level)
            root.addHandler(console)
        # SQLAlchemy echoes every statement at INFO
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    def get_log_file_path(self) -> Path:
        return self.log_file


def setup_logging(settings, service_version: str = "0.1.0") -> LoggingConfig:
    """Install JSON file logging (and console logging in development)."""
    config = LoggingConfig.from_settings(settings, service_version=service_version)
    config.setup()
    return config
