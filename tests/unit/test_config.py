"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from furlong.config import MAX_FILE_BYTES, Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FURLONG_SCHEMA_REVISION", raising=False)
        settings = Settings(_env_file=None)
        assert settings.schema_revision == "bris-12pp"
        assert settings.strict_schema is False
        assert settings.max_file_bytes == MAX_FILE_BYTES
        assert settings.min_expected_fields == 100
        assert settings.pattern_cache_ttl_seconds == 86400

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("FURLONG_MIN_EXPECTED_FIELDS", "250")
        monkeypatch.setenv("FURLONG_STRICT_SCHEMA", "1")
        settings = Settings(_env_file=None)
        assert settings.min_expected_fields == 250
        assert settings.strict_schema is True

    def test_revision_normalised(self):
        assert Settings(_env_file=None, schema_revision="  LEGACY ").schema_revision == "legacy"

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_file_bytes=0)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, binary_ratio_threshold=1.5)

    def test_cached(self):
        assert get_settings() is get_settings()
