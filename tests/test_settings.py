"""Tests for environment-driven settings and logging setup."""
from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from campushub.logging_config import configure_app_logging
from campushub.settings import Settings


def test_env_prefix_overrides(monkeypatch):
    monkeypatch.setenv("CAMPUSHUB_LEAVE_EVALUATOR", "http")
    monkeypatch.setenv("CAMPUSHUB_LEAVE_EVALUATOR_URL", "http://model.example.com/evaluate")

    settings = Settings()

    assert settings.leave_evaluator == "http"
    assert settings.leave_evaluator_url == "http://model.example.com/evaluate"


def test_defaults_point_into_repo():
    settings = Settings(db_url=None, security_config_path=None)

    assert settings.resolved_db_url().endswith("campushub.db")
    assert settings.resolved_security_config_path().name == "security_config.yaml"
    assert settings.resolved_security_config_path().exists()


def test_log_level_is_normalized_and_checked():
    assert Settings(log_level="debug").log_level == "DEBUG"

    with pytest.raises(ValidationError):
        Settings(log_level="chatty")


def test_configure_app_logging_sets_package_level():
    configure_app_logging("WARNING")

    assert logging.getLogger("campushub").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
