"""
Tests for application settings.
"""

import pytest
from pydantic import ValidationError

from gmct_attendance.core.config import Settings


class TestSettings:

    def test_defaults(self):
        settings = Settings()

        assert settings.SYNC_INTERVAL_SECONDS == 30.0
        assert settings.SYNC_RETENTION_DAYS == 7
        assert settings.LOCAL_DATABASE_URL.startswith("sqlite+aiosqlite://")
        assert settings.CONNECTIVITY_PROBE_ENABLED is False

    def test_supabase_url_trailing_slash_stripped(self):
        settings = Settings(SUPABASE_URL="https://test.supabase.co/")

        assert settings.SUPABASE_URL == "https://test.supabase.co"

    def test_log_level_normalized(self):
        assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    @pytest.mark.parametrize("field", ["SYNC_INTERVAL_SECONDS", "REMOTE_TIMEOUT_SECONDS"])
    def test_non_positive_intervals_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_retention_must_be_at_least_one_day(self):
        with pytest.raises(ValidationError):
            Settings(SYNC_RETENTION_DAYS=0)

    def test_empty_database_url_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOCAL_DATABASE_URL="")

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SYNC_INTERVAL_SECONDS", "45")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")

        settings = Settings()

        assert settings.SYNC_INTERVAL_SECONDS == 45.0
        assert settings.SUPABASE_ANON_KEY == "anon-key"
