"""Settings loading."""
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from config import Settings, get_settings, reset_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.database_url == "sqlite+aiosqlite:///./books.db"
        assert settings.lookup_country == "US"
        assert settings.require_session is False
        assert settings.default_owner_id == "local"
        assert settings.google_api_key is None
        assert settings.anthropic_api_key is None

    def test_environment_overrides(self):
        env = {
            "BOOK_INVENTORY_DATABASE_URL": "postgresql+asyncpg://db/books",
            "BOOK_INVENTORY_LOOKUP_COUNTRY": "gb",
            "BOOK_INVENTORY_REQUIRE_SESSION": "true",
            "BOOK_INVENTORY_LOG_LEVEL": "debug",
            "BOOK_INVENTORY_GOOGLE_API_KEY": "secret",
        }
        with patch.dict(os.environ, env):
            settings = Settings()
        assert settings.database_url == "postgresql+asyncpg://db/books"
        assert settings.lookup_country == "GB"
        assert settings.require_session is True
        assert settings.log_level == "DEBUG"
        assert settings.google_api_key == "secret"

    def test_keys_are_not_in_repr(self):
        assert "secret" not in repr(Settings(google_api_key="secret", anthropic_api_key="secret"))

    @pytest.mark.parametrize("field, value", [("lookup_country", "USA"), ("log_level", "LOUD"), ("lookup_timeout", 0)])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})


def test_get_settings_is_cached_until_reset():
    first = get_settings()
    assert get_settings() is first
    reset_settings()
    assert get_settings() is not first
