"""Tests for certvault.config — ManagerSettings."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from certvault.config import DEFAULT_STORAGE_PREFIX, ManagerSettings


class TestManagerSettingsDefaults:
    def test_default_storage_prefix(self) -> None:
        assert ManagerSettings(secret="s").storage_prefix == DEFAULT_STORAGE_PREFIX == "raw-"

    def test_default_cache_ttl_is_five_minutes(self) -> None:
        assert ManagerSettings(secret="s").cache_ttl == pytest.approx(300.0)

    def test_default_fingerprint_cache_ttl_is_five_minutes(self) -> None:
        assert ManagerSettings(secret="s").fingerprint_cache_ttl == pytest.approx(300.0)

    def test_default_sweep_interval_is_ten_minutes(self) -> None:
        assert ManagerSettings(secret="s").sweep_interval == pytest.approx(600.0)

    def test_fail_open_by_default(self) -> None:
        assert ManagerSettings(secret="s").fail_open is True


class TestManagerSettingsValidation:
    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ManagerSettings(secret="")

    def test_secret_is_required(self) -> None:
        with pytest.raises(ValidationError):
            ManagerSettings()  # type: ignore[call-arg]

    @pytest.mark.parametrize("field", ["cache_ttl", "fingerprint_cache_ttl", "sweep_interval"])
    def test_non_positive_durations_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError):
            ManagerSettings(secret="s", **{field: 0})

    def test_settings_are_immutable(self) -> None:
        settings = ManagerSettings(secret="s")
        with pytest.raises(ValidationError):
            settings.secret = "other"  # type: ignore[misc]
