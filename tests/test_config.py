"""Tests for Settings parsing and derived properties."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from point_transfer.config import Settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.transfer_expiry_hours == 24
        assert settings.completion_lease_seconds == 300
        assert settings.smtp_port == 587
        assert settings.frontend_url == "http://localhost:3000"

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRANSFER_EXPIRY_HOURS", "48")
        monkeypatch.setenv("BALANCE_SERVICE_URL", "http://users:8001")

        settings = Settings(_env_file=None)

        assert settings.transfer_expiry_hours == 48
        assert settings.balance_service_url == "http://users:8001"

    def test_cors_origin_list(self) -> None:
        settings = Settings(
            _env_file=None,
            cors_allowed_origins="http://a.test, http://b.test,,",
        )
        assert settings.cors_origin_list == ["http://a.test", "http://b.test"]

    def test_smtp_auth_needs_both_credentials(self) -> None:
        assert not Settings(_env_file=None, smtp_username="mailer").smtp_auth_enabled
        assert Settings(
            _env_file=None, smtp_username="mailer", smtp_password="x"
        ).smtp_auth_enabled

    def test_settings_are_frozen(self) -> None:
        settings = Settings(_env_file=None)
        with pytest.raises(ValidationError):
            settings.transfer_expiry_hours = 1

    def test_unknown_environment_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, app_env="qa")

    def test_lease_must_outlast_two_balance_calls(self) -> None:
        with pytest.raises(ValidationError, match="completion_lease_seconds"):
            Settings(
                _env_file=None,
                balance_service_timeout_seconds=200,
                completion_lease_seconds=300,
            )

    def test_short_balance_timeout_fits_lease(self) -> None:
        settings = Settings(
            _env_file=None,
            balance_service_timeout_seconds=30,
            completion_lease_seconds=120,
        )
        assert settings.completion_lease_seconds == 120
