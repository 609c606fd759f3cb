import logging

import pytest

from loan_desk.config import DevelopmentConfig, ProductionConfig, TestingConfig, configure_logging, get_config


def test_get_config_by_name():
    assert get_config("testing") is TestingConfig
    assert get_config("development") is DevelopmentConfig


def test_get_config_defaults_to_production(monkeypatch):
    monkeypatch.delenv("LOAN_DESK_ENV", raising=False)
    assert get_config() is ProductionConfig


def test_get_config_reads_environment(monkeypatch):
    monkeypatch.setenv("LOAN_DESK_ENV", "testing")
    assert get_config() is TestingConfig


def test_get_config_rejects_unknown_names():
    with pytest.raises(ValueError):
        get_config("staging")


def test_testing_config_uses_in_memory_database():
    assert TestingConfig.DATABASE_URL == "sqlite:///:memory:"
    assert TestingConfig.MAX_SCHEDULE_ROWS == 120


def test_configure_logging_sets_package_level():
    logger = configure_logging("debug")
    assert logger.name == "loan_desk"
    assert logger.level == logging.DEBUG
    configure_logging("INFO")
