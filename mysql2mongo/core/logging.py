"""Application logging with Loguru + Slack notifications."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict

import httpx
from loguru import logger

from mysql2mongo.core.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[name]}:{function}:{line} | {message}"

# Track if logging is already configured to prevent duplicates
_logging_configured = False


class InterceptHandler(logging.Handler):
    """Redirect stdlib logs (SQLAlchemy, pymongo) to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def format_alert(record: Dict[str, Any]) -> str:
    """Slack text for a log record, tagged with the run it came from."""
    extra = record["extra"]
    name = extra.get("name") or record.get("name", "mysql2mongo")
    context = " ".join(f"{key}={extra[key]}" for key in ("run_mode", "table") if extra.get(key))
    header = f"*mysql2mongo* [{record['level'].name}] {settings.SQL_DBNAME} -> {settings.NOSQL_DBNAME}"
    if context:
        header = f"{header} | {context}"
    return f"{header}\n{name}:{record['function']}:{record['line']} {record['message']}"


def _slack_sink(message: Any) -> None:
    if not settings.SLACK_WEBHOOK_URL:
        return

    try:
        httpx.post(settings.SLACK_WEBHOOK_URL, json={"text": format_alert(message.record)}, timeout=5.0)
    except httpx.HTTPError as exc:
        # Written to stderr directly; logging here would feed back into this sink
        print(f"Slack alert not delivered: {exc}", file=sys.stderr)


def _normalize_level(raw: str | None) -> str:
    level = (raw or "INFO").strip().upper()
    level = {
        "WARN": "WARNING",
        "FATAL": "CRITICAL",
    }.get(level, level)
    if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
        level = "INFO"
    return level


def configure_logging() -> None:
    global _logging_configured

    # Prevent duplicate configuration
    if _logging_configured:
        return
    _logging_configured = True

    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = _normalize_level(settings.effective_log_level)

    logger.remove()
    # Provide a safe default for log formatting.
    logger.configure(extra={"name": "mysql2mongo"})
    logger.add(
        sys.stdout,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.add(
        log_dir / "mysql2mongo.log",
        level=level,
        format=LOG_FORMAT,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )

    if settings.SLACK_WEBHOOK_URL:
        logger.add(_slack_sink, level="ERROR", enqueue=True)

    # Intercept stdlib logging so driver logs share the format
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Driver chatter stays at WARNING unless explicitly debugging
    for logger_name in ["sqlalchemy.engine", "pymongo", "aiomysql"]:
        logging.getLogger(logger_name).setLevel(logging.DEBUG if level == "DEBUG" else logging.WARNING)


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


configure_logging()
