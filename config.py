# config.py: settings loaded from the environment / .env
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the book inventory.

    Every field can be overridden with a ``BOOK_INVENTORY_`` environment
    variable, e.g. ``BOOK_INVENTORY_GOOGLE_API_KEY``.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOOK_INVENTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Database ===

    database_url: str = Field(
        default="sqlite+aiosqlite:///./books.db",
        description="SQLAlchemy async database URL",
    )

    # === External services ===

    google_api_key: str | None = Field(
        default=None,
        description="Google Books API key used for ISBN lookups",
        repr=False,
    )

    lookup_country: str = Field(
        default="US",
        description="Default ISO 3166-1 alpha-2 country for lookups",
        pattern=r"^[A-Z]{2}$",
    )

    lookup_timeout: float = Field(
        default=6.0,
        description="Timeout in seconds for metadata lookups",
        gt=0,
    )

    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key used for market price estimates",
        repr=False,
    )

    pricing_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used for market price estimates",
    )

    # === Owners ===

    require_session: bool = Field(
        default=False,
        description="Reject requests that do not name an owner",
    )

    default_owner_id: str = Field(
        default="local",
        description="Owner used when no session is required and none is given",
        min_length=1,
    )

    # === Development ===

    debug: bool = False

    log_level: str = Field(
        default="INFO",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("lookup_country", "log_level", mode="before")
    @classmethod
    def upper_case(cls, v):
        return v.upper() if isinstance(v, str) else v


class _SettingsStore:
    _instance: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, creating them on first use."""
    if _SettingsStore._instance is None:
        _SettingsStore._instance = Settings()
    return _SettingsStore._instance


def reset_settings() -> None:
    """Forget the cached settings (tests)."""
    _SettingsStore._instance = None
