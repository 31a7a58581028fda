"""structlog setup: JSON lines to console, batch/error files and per-job files."""

from __future__ import annotations

import logging
import logging.config
from collections import deque
from pathlib import Path
from typing import Iterable

import structlog

from .config.loader import default_home

ROOT_LOGGER = "riksdagskollen"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# (log directory, verbose) of the active stdlib configuration
_ACTIVE: tuple[Path, bool] | None = None
_STRUCTLOG_READY = False


def log_dir() -> Path:
    return default_home() / "logs"


def _stdlib_config(directory: Path, verbose: bool) -> dict:
    level = "DEBUG" if verbose else "INFO"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level if verbose else "WARNING",
                "formatter": "json",
            },
            "batch_file": {
                "class": "logging.FileHandler",
                "level": "INFO",
                "filename": str(directory / "batch.log"),
                "encoding": "utf-8",
                "formatter": "json",
            },
            "error_file": {
                "class": "logging.FileHandler",
                "level": "ERROR",
                "filename": str(directory / "error.log"),
                "encoding": "utf-8",
                "formatter": "json",
            },
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "batch_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def _configure_structlog() -> None:
    global _STRUCTLOG_READY
    if _STRUCTLOG_READY:
        return
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _STRUCTLOG_READY = True


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Route structlog through stdlib handlers writing JSON lines.

    Reconfigures the handlers when the home directory or verbosity changed
    since the previous call.
    """

    global _ACTIVE
    directory = log_dir()
    (directory / "jobs").mkdir(parents=True, exist_ok=True)
    wanted = (directory, verbose)
    if _ACTIVE != wanted:
        logging.config.dictConfig(_stdlib_config(directory, verbose))
        _ACTIVE = wanted
    _configure_structlog()
    return structlog.get_logger(ROOT_LOGGER)


def job_logger(job_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``job=<name>`` that also writes ``logs/jobs/<name>.log``."""

    configure_logging(verbose)
    path = log_path(job_name)
    py_logger = logging.getLogger(f"{ROOT_LOGGER}.job.{job_name}")
    for handler in list(py_logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename != str(path):
            py_logger.removeHandler(handler)
            handler.close()
    if not py_logger.handlers:
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.getLogger(ROOT_LOGGER).handlers[0].formatter)
        handler.setLevel(logging.INFO)
        py_logger.addHandler(handler)
    return structlog.get_logger(py_logger.name).bind(job=job_name)


def log_path(job_name: str | None = None) -> Path:
    if job_name:
        return log_dir() / "jobs" / f"{job_name}.log"
    return log_dir() / "batch.log"


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=line_count))


def available_job_logs() -> Iterable[Path]:
    jobs_dir = log_dir() / "jobs"
    if not jobs_dir.exists():
        return []
    return sorted(jobs_dir.glob("*.log"))


__all__ = ["available_job_logs", "configure_logging", "job_logger", "log_dir", "log_path", "tail_log"]
