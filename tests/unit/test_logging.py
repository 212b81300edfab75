"""Unit tests for logging configuration."""

import logging
import os
import re
import sys
import time
from datetime import date
from pathlib import Path

import pytest

from waveplan.config.models import WaveplanConfig
from waveplan.utils.logging import (
    WaveplanFormatter,
    configure_logging,
    log_file_for,
    prune_logs,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before and after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers.copy()

    yield

    for handler in root.handlers:
        if handler not in original_handlers:
            handler.close()
    root.setLevel(original_level)
    root.handlers.clear()
    for handler in original_handlers:
        root.addHandler(handler)


def make_record(name="waveplan.scheduler.waves", level=logging.INFO, msg="Scheduled"):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="waves.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def age(path: Path, days: int) -> None:
    stale = time.time() - days * 86400
    os.utime(path, (stale, stale))


class TestFormatter:
    """Tests for WaveplanFormatter."""

    def test_no_color_codes(self):
        """Test that formatter produces no ANSI codes when use_colors=False."""
        output = WaveplanFormatter(use_colors=False).format(make_record())

        assert not re.search(r"\033\[[0-9;]*m", output)
        assert "INFO" in output

    def test_area_strips_package_prefix(self):
        output = WaveplanFormatter(use_colors=False).format(make_record())
        assert output.endswith(" scheduler.waves: Scheduled")

    def test_foreign_logger_name_kept(self):
        output = WaveplanFormatter(use_colors=False).format(make_record(name="yaml"))
        assert " yaml: Scheduled" in output

    def test_includes_timestamp(self):
        output = WaveplanFormatter(use_colors=False).format(make_record())
        assert re.match(r"^\[\d{2}:\d{2}:\d{2}\] ", output)

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record(level=logging.ERROR, msg="Failed")
            record.exc_info = sys.exc_info()

        output = WaveplanFormatter(use_colors=False).format(record)
        assert "Failed" in output
        assert "ValueError: boom" in output


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_console_handler_created(self):
        setup_logging()

        root = logging.getLogger()
        assert any(isinstance(h.formatter, WaveplanFormatter) for h in root.handlers)

    def test_console_disabled(self):
        setup_logging(console=False)
        assert logging.getLogger().handlers == []

    def test_log_level(self):
        setup_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

        setup_logging(level="LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "nested" / "test.log"
        setup_logging(log_file=log_file, console=False, backup_count=2)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].baseFilename == str(log_file)
        assert handlers[0].backupCount == 2


class TestConfigureLogging:
    """Tests for configure_logging with a project config."""

    def test_log_dir_resolved_against_project_root(self, tmp_path):
        """Test records land in the project's daily log file."""
        config = WaveplanConfig(project={"root": tmp_path})

        log_file = configure_logging(config)
        logging.getLogger("waveplan.state.machine").info("Task A-API: backlog -> in_progress")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file == tmp_path / ".waveplan" / "logs" / f"waveplan-{date.today():%Y%m%d}.log"
        assert "state.machine: Task A-API" in log_file.read_text()

    def test_quiet_by_default(self, tmp_path):
        config = WaveplanConfig(project={"root": tmp_path}, logging={"level": "WARNING"})
        configure_logging(config)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert all(isinstance(h, logging.FileHandler) for h in root.handlers)

    def test_verbose_adds_console_at_debug(self, tmp_path):
        config = WaveplanConfig(project={"root": tmp_path})
        configure_logging(config, verbose=True)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(not isinstance(h, logging.FileHandler) for h in root.handlers)

    def test_without_files(self, tmp_path):
        config = WaveplanConfig(project={"root": tmp_path})

        assert configure_logging(config, write_files=False) is None
        assert not (tmp_path / ".waveplan").exists()

    def test_prunes_expired_logs(self, tmp_path):
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        old = log_dir / "waveplan-20000101.log"
        old.write_text("old")
        age(old, 30)
        config = WaveplanConfig(
            project={"root": tmp_path},
            logging={"log_dir": "logs", "retention_days": 7},
        )

        configure_logging(config)

        assert not old.exists()


def test_log_file_for():
    assert log_file_for(Path("logs"), date(2026, 3, 4)) == Path("logs/waveplan-20260304.log")


def test_prune_logs(tmp_path):
    old = tmp_path / "waveplan-20000101.log"
    rotated = tmp_path / "waveplan-20000101.log.1"
    new = tmp_path / "waveplan-20990101.log"
    unrelated = tmp_path / "other.log"
    for path in (old, rotated, new, unrelated):
        path.write_text("x")
    for path in (old, rotated, unrelated):
        age(path, 10)

    removed = prune_logs(tmp_path, retention_days=7)

    assert sorted(removed) == sorted([old, rotated])
    assert new.exists()
    assert unrelated.exists()


def test_prune_logs_disabled(tmp_path):
    old = tmp_path / "waveplan-20000101.log"
    old.write_text("old")
    age(old, 10)

    assert prune_logs(tmp_path, retention_days=0) == []
    assert prune_logs(tmp_path / "missing", retention_days=7) == []
    assert old.exists()
