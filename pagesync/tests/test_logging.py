"""Logging setup tests"""

import pytest
from loguru import logger

from pagesync.core.config import settings
from pagesync.core.logging import get_logger, log_level, sync_context


@pytest.fixture
def records():
    captured = []
    sink_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(sink_id)


class TestLogging:
    def test_sync_context_tags_records(self, records):
        log = get_logger("orchestrator")
        with sync_context("blog"):
            log.info("inside")
        log.info("outside")

        assert [(r["message"], r["extra"]["data_source"]) for r in records] == [
            ("inside", "blog"),
            ("outside", "-"),
        ]
        assert records[0]["extra"]["name"] == "orchestrator"

    @pytest.mark.parametrize(
        "env,level,expected",
        [
            ("dev", "debug", "DEBUG"),
            ("prod", "DEBUG", "INFO"),
            ("dev", "warn", "WARNING"),
            ("dev", "chatty", "INFO"),
        ],
    )
    def test_log_level(self, monkeypatch, env, level, expected):
        monkeypatch.setattr(settings, "ENV", env)
        monkeypatch.setattr(settings, "LOG_LEVEL", level)
        assert log_level() == expected
