"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from timekeeper.config import Settings


def test_checkout_policy_defaults_to_reject(monkeypatch):
    monkeypatch.delenv("CHECKOUT_OPEN_BREAK_POLICY", raising=False)
    assert Settings().CHECKOUT_OPEN_BREAK_POLICY == "reject"


def test_checkout_policy_from_environment(monkeypatch):
    monkeypatch.setenv("CHECKOUT_OPEN_BREAK_POLICY", "auto_close")
    assert Settings().CHECKOUT_OPEN_BREAK_POLICY == "auto_close"


def test_unknown_checkout_policy_fails_at_load(monkeypatch):
    monkeypatch.setenv("CHECKOUT_OPEN_BREAK_POLICY", "leave_open")
    with pytest.raises(ValidationError):
        Settings()
