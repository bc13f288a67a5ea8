from __future__ import annotations

import logging
import os

import pytest

from leavesync.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_reconcile_config,
    require_env_var,
    require_env_vars,
)
from leavesync.config.env import env_float, env_int
from leavesync.config.logging import resolve_log_level


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "  ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_reads_single_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEMP_VAR", "123")

    assert os.getenv("TEMP_VAR") == "123"
    assert require_env_var("TEMP_VAR") == "123"


def test_numeric_env_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LEAVESYNC_TEST_NUMBER", raising=False)
    assert env_int("LEAVESYNC_TEST_NUMBER", 5) == 5

    monkeypatch.setenv("LEAVESYNC_TEST_NUMBER", "7")
    assert env_int("LEAVESYNC_TEST_NUMBER", 5) == 7
    assert env_float("LEAVESYNC_TEST_NUMBER", 1.5) == 7.0

    monkeypatch.setenv("LEAVESYNC_TEST_NUMBER", "seven")
    with pytest.raises(ConfigurationError):
        env_int("LEAVESYNC_TEST_NUMBER", 5)
    with pytest.raises(ConfigurationError):
        env_float("LEAVESYNC_TEST_NUMBER", 1.5)


def test_reconcile_config_reads_matching_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEAVESYNC_MATCH_HIGH_CONFIDENCE", "95")
    monkeypatch.setenv("LEAVESYNC_MATCH_MAX_CANDIDATES", "3")
    monkeypatch.delenv("LEAVESYNC_MATCH_CANDIDATE_FLOOR", raising=False)

    config = get_reconcile_config()

    assert config.matching.high_confidence == 95.0
    assert config.matching.max_candidates == 3
    assert config.matching.candidate_floor == 60.0
    assert config.seconds_for("unmatched") == 45.0
    assert config.seconds_for("unknown") == 30.0


def test_reconcile_config_reads_resolution_seconds(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEAVESYNC_RESOLUTION_SECONDS_OVER_ALLOTMENT", "90")
    monkeypatch.delenv("LEAVESYNC_RESOLUTION_SECONDS_DUPLICATES", raising=False)

    config = get_reconcile_config()

    assert config.seconds_for("over_allotment") == 90.0
    assert config.seconds_for("duplicates") == 15.0

    monkeypatch.setenv("LEAVESYNC_RESOLUTION_SECONDS_FINAL_REVIEW", "soon")
    with pytest.raises(ConfigurationError):
        get_reconcile_config()


def test_log_level_resolution(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LEAVESYNC_LOG_LEVEL", raising=False)
    assert resolve_log_level() == logging.INFO

    monkeypatch.setenv("LEAVESYNC_LOG_LEVEL", "debug")
    assert resolve_log_level() == logging.DEBUG
    assert resolve_log_level("warning") == logging.WARNING
    assert resolve_log_level(logging.ERROR) == logging.ERROR
    assert resolve_log_level("chatty") == logging.INFO
