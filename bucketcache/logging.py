"""Logging utilities for bucketcache."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class LogFormat(Enum):
    HUMAN = "human"
    JSON = "json"
    GITHUB = "github"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "human"
    progress_interval: int = 10
    show_timestamps: bool = True


class HumanFormatter(logging.Formatter):
    """Human-readable log formatter."""

    def __init__(self, config: LoggingConfig) -> None:
        super().__init__()
        self.config = config

    def format(self, record: logging.LogRecord) -> str:
        timestamp = ""
        if self.config.show_timestamps:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            timestamp = f"{timestamp} - "

        level = record.levelname
        message = record.getMessage()

        return f"[{level}] {timestamp}{message}"


class JsonFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def __init__(self, config: LoggingConfig) -> None:
        super().__init__()
        self.config = config

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "level": record.levelname,
            "ts": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "event": getattr(record, "event", "log"),
            "message": record.getMessage(),
        }

        for key in (
            "step",
            "duration",
            "status",
            "target",
            "part",
            "parts",
            "bytes",
        ):
            val = getattr(record, key, None)
            if val is not None:
                data[key] = val

        return json.dumps(data)


def _escape_data(value: str) -> str:
    # Workflow command payloads must not contain raw newlines.
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class GithubFormatter(logging.Formatter):
    """GitHub Actions workflow command formatter.

    Step lifecycle records open and close collapsible log groups, errors and
    warnings become annotations, and debug records only show up when the
    workflow runs with step debugging enabled.
    """

    def __init__(self, config: LoggingConfig) -> None:
        super().__init__()
        self.config = config

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        event = getattr(record, "event", "log")

        if event == "step_start":
            return f"::group::{message}"
        if event == "step_complete":
            return f"{message}\n::endgroup::"
        if event == "step_fail":
            return f"::error::{_escape_data(message)}\n::endgroup::"

        if record.levelno >= logging.ERROR:
            return f"::error::{_escape_data(message)}"
        if record.levelno >= logging.WARNING:
            return f"::warning::{_escape_data(message)}"
        if record.levelno <= logging.DEBUG:
            return f"::debug::{_escape_data(message)}"
        return message


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    LogFormat.HUMAN.value: HumanFormatter,
    LogFormat.JSON.value: JsonFormatter,
    LogFormat.GITHUB.value: GithubFormatter,
}


def get_logger(name: str, config: LoggingConfig) -> logging.Logger:
    """Create a configured logger."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter_cls = _FORMATTERS.get(config.format, HumanFormatter)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter_cls(config))  # type: ignore[call-arg]
    logger.addHandler(handler)
    logger.propagate = False

    return logger


class StepLogger:
    """Logger for save step lifecycle events."""

    def __init__(
        self, step_name: str, logger: logging.Logger, title: str | None = None
    ) -> None:
        self.step_name = step_name
        self.logger = logger
        self.title = title or f"Step '{step_name}' started"
        self.start_time: datetime | None = None

    def start(self) -> None:
        """Log step start."""
        self.start_time = datetime.now()
        extra = {"event": "step_start", "step": self.step_name}
        self.logger.info(self.title, extra=extra)

    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return (datetime.now() - self.start_time).total_seconds()

    def complete(self) -> None:
        """Log step completion."""
        duration = self.elapsed()
        extra = {
            "event": "step_complete",
            "step": self.step_name,
            "duration": duration,
            "status": "success",
        }
        self.logger.info(
            f"Step '{self.step_name}' completed in {duration:.3f}s",
            extra=extra,
        )

    def fail(self, error: BaseException) -> None:
        """Log step failure."""
        duration = self.elapsed()
        extra = {
            "event": "step_fail",
            "step": self.step_name,
            "duration": duration,
            "status": "failed",
        }
        self.logger.error(
            f"Step '{self.step_name}' failed after {duration:.3f}s: {error}",
            extra=extra,
        )


class UploadProgressLogger:
    """Logger for chunked upload progress."""

    def __init__(
        self,
        target: str,
        total_parts: int,
        total_bytes: int,
        logger: logging.Logger,
        config: LoggingConfig,
    ) -> None:
        self.target = target
        self.total_parts = total_parts
        self.total_bytes = total_bytes
        self.logger = logger
        self.config = config
        self.completed = 0
        self.uploaded_bytes = 0
        self._last_pct = -1

    def start(self) -> None:
        extra = {
            "event": "upload_start",
            "target": self.target,
            "parts": self.total_parts,
            "bytes": self.total_bytes,
        }
        self.logger.info(
            f"Uploading file '{self.target}' "
            f"({self.total_bytes} bytes in {self.total_parts} part(s))",
            extra=extra,
        )

    def update(self, part_number: int, size: int) -> None:
        """Record a finished part and log when the next interval is reached."""
        self.completed += 1
        self.uploaded_bytes += size

        pct = (
            int(100 * self.completed / self.total_parts)
            if self.total_parts > 0
            else 100
        )
        interval = max(1, self.config.progress_interval)

        if pct >= self._last_pct + interval or self.completed == self.total_parts:
            self._last_pct = pct
            self._log_progress(part_number, pct)

    def _log_progress(self, part_number: int, pct: int) -> None:
        bar_len = 20
        filled = (
            int(bar_len * self.completed / self.total_parts)
            if self.total_parts > 0
            else bar_len
        )
        bar = "=" * filled + ">" + " " * (bar_len - filled)

        extra = {
            "event": "upload_progress",
            "target": self.target,
            "part": part_number,
            "parts": self.total_parts,
            "bytes": self.uploaded_bytes,
        }
        self.logger.info(
            f"  [{bar}] {self.completed}/{self.total_parts} parts ({pct}%)",
            extra=extra,
        )
