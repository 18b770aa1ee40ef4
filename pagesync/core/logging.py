"""Loguru setup.

Every record carries the logger name and, inside `sync_context`, the data
source being synced. Errors are mirrored to Slack when SLACK_WEBHOOK_URL is
set.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import httpx
from loguru import logger

from pagesync.core.config import settings

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]} | ds={extra[data_source]} | "
    "{function}:{line} | {message}"
)

LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

# Per-request chatter from the Notion client's transport
NOISY_LOGGERS = ("httpx", "httpcore", "notion_client")

_configured = False


class InterceptHandler(logging.Handler):
    """Route stdlib logging records into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _slack_sink(message: Any) -> None:
    record = message.record
    extra = record["extra"]
    text = f":rotating_light: *{record['level'].name}* in `{extra.get('name', 'pagesync')}`"
    if extra.get("data_source", "-") != "-":
        text += f" (data source `{extra['data_source']}`)"
    text += f"\n{record['message']}"

    try:
        httpx.post(settings.SLACK_WEBHOOK_URL, json={"text": text}, timeout=5.0)
    except httpx.HTTPError:
        # Logging the failure here would recurse into this sink
        pass


def log_level() -> str:
    level = settings.effective_log_level
    level = LEVEL_ALIASES.get(level, level)
    return level if level in LEVELS else "INFO"


def configure_logging() -> None:
    global _configured
    if _configured:
        return
    _configured = True

    level = log_level()
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"name": "pagesync", "data_source": "-"})
    logger.add(sys.stdout, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    logger.add(
        log_dir / "pagesync.log",
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

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False
    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


@contextmanager
def sync_context(data_source_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with the data source."""
    with logger.contextualize(data_source=data_source_id):
        yield


configure_logging()
