"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from clinicflow.config import Settings


def test_policy_and_format_are_case_insensitive() -> None:
    config = Settings(AUDIT_FAILURE_POLICY="Lenient", LOG_FORMAT="CONSOLE")

    assert config.audit_failure_policy == "lenient"
    assert config.audit_is_strict is False
    assert config.log_format == "console"


def test_unknown_audit_policy_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(AUDIT_FAILURE_POLICY="sometimes")


def test_unknown_timezone_is_rejected() -> None:
    with pytest.raises(ValidationError, match="Unknown timezone"):
        Settings(CLINIC_TIMEZONE="Mars/Olympus_Mons")


def test_closing_time_must_follow_opening_time() -> None:
    with pytest.raises(ValidationError, match="CLINIC_CLOSING_TIME"):
        Settings(CLINIC_OPENING_TIME="18:00", CLINIC_CLOSING_TIME="08:00")


def test_cors_origins_are_split_and_trimmed() -> None:
    config = Settings(CORS_ORIGINS="https://desk.example.com, https://doctor.example.com,")

    assert config.cors_origins == ["https://desk.example.com", "https://doctor.example.com"]
