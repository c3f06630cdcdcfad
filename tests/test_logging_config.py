"""Tests for logging setup and timing helpers."""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from vlan_automation.config.schema import LoggingSettings
from vlan_automation.utils.logging_config import (
    ensure_log_dir,
    perf_logger,
    setup_logging,
    timed,
    timed_section,
)


@pytest.fixture
def restore_loggers():
    """Drop handlers added by setup_logging after the test."""
    yield
    for logger in (logging.getLogger("vlan_automation"), perf_logger):
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
    perf_logger.propagate = True


class TestSetupLogging:
    """Tests for handler configuration per debug level."""

    def test_level_0_console_only(self, tmp_path, restore_loggers):
        log_file = tmp_path / "logs" / "va.log"
        setup_logging(LoggingSettings(debug_level=0, log_file=str(log_file)))

        handlers = logging.getLogger("vlan_automation").handlers
        assert len(handlers) == 1
        assert not isinstance(handlers[0], RotatingFileHandler)
        assert not log_file.parent.exists()

    @pytest.mark.parametrize("level,file_level", [(1, logging.INFO), (2, logging.DEBUG), (3, logging.DEBUG)])
    def test_file_handler_levels(self, tmp_path, restore_loggers, level, file_level):
        log_file = tmp_path / "logs" / "va.log"
        setup_logging(LoggingSettings(debug_level=level, log_file=str(log_file)))

        file_handlers = [
            h for h in logging.getLogger("vlan_automation").handlers
            if isinstance(h, RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == file_level
        assert file_handlers[0].mode == "a"
        assert log_file.exists()

    def test_perf_log_written(self, tmp_path, restore_loggers):
        log_file = tmp_path / "va.log"
        setup_logging(LoggingSettings(debug_level=1, log_file=str(log_file)))

        perf_logger.info("get_connections | platform | 1.00ms | OK")
        for handler in perf_logger.handlers:
            handler.flush()

        assert "get_connections" in (tmp_path / "va-perf.log").read_text()

    def test_repeated_setup_does_not_duplicate(self, tmp_path, restore_loggers):
        settings = LoggingSettings(debug_level=1, log_file=str(tmp_path / "va.log"))
        setup_logging(settings)
        setup_logging(settings)
        assert len(logging.getLogger("vlan_automation").handlers) == 2


class TestEnsureLogDir:
    def test_creates_nested(self, tmp_path):
        log_file = tmp_path / "a" / "b" / "va.log"
        assert ensure_log_dir(log_file)
        assert log_file.parent.is_dir()


class TestTimed:
    """Tests for timing helpers."""

    @pytest.mark.asyncio
    async def test_async_timed(self, caplog):
        class Client:
            device_id = "platform"

            @timed("get_connections")
            async def fetch(self):
                return 42

        with caplog.at_level(logging.INFO, logger="vlan_automation.perf"):
            assert await Client().fetch() == 42
        assert "get_connections" in caplog.text
        assert "platform" in caplog.text

    @pytest.mark.asyncio
    async def test_timed_failure(self, caplog):
        @timed("commit", device_id="switch-25")
        async def commit():
            raise ValueError("bad")

        with caplog.at_level(logging.INFO, logger="vlan_automation.perf"):
            with pytest.raises(ValueError):
                await commit()
        assert "FAIL: bad" in caplog.text

    @pytest.mark.asyncio
    async def test_timed_section_extra(self, caplog):
        with caplog.at_level(logging.INFO, logger="vlan_automation.perf"):
            async with timed_section("apply_config", device_id="switch-25", server=36):
                pass
        assert "server=36" in caplog.text
