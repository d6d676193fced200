"""Tests for process logging setup."""

import logging

from tradein.log import init_logging


def test_env_levels_override_arguments(monkeypatch):
    monkeypatch.setenv("LOG_APP_LEVEL", "warning")
    monkeypatch.setenv("LOG_THIRD_PARTY_LEVEL", "chatty")
    init_logging(root_level="INFO", app_level="DEBUG", third_party_level="ERROR")

    assert logging.getLogger("tradein").level == logging.WARNING
    # unknown names fall back to the argument
    assert logging.getLogger("httpx").level == logging.ERROR
    assert logging.getLogger("httpcore").level == logging.ERROR
    assert logging.getLogger("tradein").propagate is False

    monkeypatch.delenv("LOG_APP_LEVEL")
    monkeypatch.delenv("LOG_THIRD_PARTY_LEVEL")
    init_logging(app_level="DEBUG")
    assert logging.getLogger("tradein").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
