# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Tests for configuration, safe mode state, errors and logging"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
import yaml

from strata.core import config
from strata.core.config import (
    ConfigLoader,
    ObservabilityConfig,
    get_config,
    get_dot_path,
    get_state_file,
    load_config,
)
from strata.core.context import InterruptToken, RunContext
from strata.core.exceptions import (
    ConfigParseError,
    ErrorHandler,
    FilterRunError,
    StrataError,
    SubprocessExecutionError,
)
from strata.core.logger import setup_logging
from strata.core.safe_mode import SafeModeStore


# =============================================================================
# Configuration
# =============================================================================


class TestConfig:
    def test_defaults(self):
        cfg = config.StrataConfig()
        assert cfg.paths.dot_dir == ".strata"
        assert cfg.runtime.python_candidates == ["python3", "python"]
        assert cfg.runtime.git_executable == "git"
        assert "security" not in cfg.model_dump()
        assert cfg.observability.log_level == "INFO"

    def test_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STRATA_HOME", str(tmp_path))
        monkeypatch.setenv("STRATA_DOT_DIR", ".build")
        monkeypatch.setenv("STRATA_PYTHON", "python3.12,python3")
        monkeypatch.setenv("STRATA_LOG_LEVEL", "debug")

        cfg = load_config()

        assert cfg.paths.home == tmp_path
        assert cfg.paths.dot_dir == ".build"
        assert cfg.runtime.python_candidates == ["python3.12", "python3"]
        assert cfg.observability.log_level == "DEBUG"

    def test_file_then_env(self, monkeypatch, tmp_path):
        config_file = tmp_path / "strata.yaml"
        config_file.write_text(
            yaml.safe_dump({"runtime": {"git_executable": "/opt/git"}, "paths": {"dot_dir": ".x"}})
        )
        monkeypatch.setenv("STRATA_DOT_DIR", ".y")

        cfg = load_config(config_file)

        assert cfg.runtime.git_executable == "/opt/git"
        assert cfg.paths.dot_dir == ".y"

    def test_invalid_values_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("STRATA_LOG_LEVEL", "LOUD")
        assert load_config().observability.log_level == "INFO"

    def test_log_level_validation(self):
        with pytest.raises(ValueError):
            ObservabilityConfig(log_level="verbose")

    def test_merge_is_deep(self):
        merged = ConfigLoader.merge_configs(
            {"paths": {"home": "/a", "dot_dir": ".a"}}, {"paths": {"dot_dir": ".b"}}
        )
        assert merged == {"paths": {"home": "/a", "dot_dir": ".b"}}

    def test_helpers(self, tmp_path):
        assert get_state_file("unlocked.yaml") == get_config().paths.state_dir / "unlocked.yaml"
        assert get_dot_path(tmp_path) == tmp_path / ".strata"


# =============================================================================
# Safe mode
# =============================================================================


class TestSafeMode:
    def test_locked_by_default(self, project):
        assert not SafeModeStore().is_unlocked(project)

    def test_unlock_and_lock(self, project):
        store = SafeModeStore()
        store.unlock(project)
        assert store.is_unlocked(project)
        assert SafeModeStore().is_unlocked(project / ".")

        store.lock(project)
        assert not store.is_unlocked(project)

    def test_unlock_is_per_project(self, tmp_path):
        store = SafeModeStore(tmp_path / "state.yaml")
        store.unlock(tmp_path / "a")
        assert not store.is_unlocked(tmp_path / "b")

    def test_corrupt_state_counts_as_locked(self, tmp_path):
        state = tmp_path / "state.yaml"
        state.write_text("projects: [unterminated")
        assert not SafeModeStore(state).is_unlocked(tmp_path)


# =============================================================================
# Context
# =============================================================================


class TestRunContext:
    def test_with_location_keeps_flags(self, project, dot_path):
        token = InterruptToken()
        context = RunContext(project, dot_path, unlocked=True, interrupt=token)
        nested = context.with_location(project / "nested")

        assert nested.absolute_location == project / "nested"
        assert nested.unlocked
        token.interrupt()
        assert nested.is_interrupted()

    def test_working_directory(self, project, dot_path):
        context = RunContext(project, dot_path)
        assert context.working_directory() == (dot_path / "tmp").resolve()


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    def test_to_dict(self):
        cause = SubprocessExecutionError("exit 1", returncode=1)
        error = FilterRunError(
            "Failed to run filter 'bake'",
            filter_name="bake",
            filter_id="bake",
            cause=cause,
            hint="check the script",
        )
        data = error.to_dict()
        assert data["type"] == "FilterRunError"
        assert data["filter_name"] == "bake"
        assert data["hint"] == "check the script"
        assert data["cause"] == {"type": "SubprocessExecutionError", "message": "exit 1"}

    def test_config_error_fields(self):
        data = ConfigParseError("bad", field="script", filter_id="bake").to_dict()
        assert data["field"] == "script"
        assert data["filter_id"] == "bake"

    def test_report(self, caplog, monkeypatch):
        error = FilterRunError(
            "Failed to run filter 'bake'",
            cause=SubprocessExecutionError("exit 1"),
            hint="check the script",
        )
        monkeypatch.setattr(logging.getLogger("strata"), "propagate", True)
        with caplog.at_level(logging.DEBUG, logger="strata"):
            result = ErrorHandler.report(error)

        assert result["message"] == "Failed to run filter 'bake'"
        messages = [r.getMessage() for r in caplog.records]
        assert "Failed to run filter 'bake'" in messages
        assert "Hint: check the script" in messages
        assert any("SubprocessExecutionError" in m for m in messages)

    def test_report_wraps_foreign_errors(self):
        assert ErrorHandler.report(OSError("disk"))["type"] == "StrataError"

    def test_str(self):
        assert str(StrataError("boom", details={"a": 1})) == "boom | Details: {'a': 1}"


# =============================================================================
# Logging
# =============================================================================


class TestLogging:
    def test_console_only(self):
        root = setup_logging(level="WARNING")
        handlers = root.logger.handlers
        assert len(handlers) == 1
        assert handlers[0].level == logging.WARNING
        assert root.logger.propagate is False

    def test_file_logging(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STRATA_NO_FILE_LOGS", "false")
        root = setup_logging(level="INFO", log_dir=tmp_path / "logs")
        file_handlers = [h for h in root.logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert Path(file_handlers[0].baseFilename) == tmp_path / "logs" / "strata.log"
        for handler in file_handlers:
            handler.close()

    def test_set_level(self):
        root = setup_logging(level="INFO")
        root.set_level("ERROR")
        assert root.logger.handlers[0].level == logging.ERROR

