from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.errors import ConfigurationError

REQUIRED_SETTINGS = ("BACKEND_URL", "BACKEND_ANON_KEY", "SECRET_KEY")


class Settings(BaseSettings):
    APP_NAME: str = "JeuxBoard"
    DEBUG: bool = False

    # Paths
    SQLITE_DB_PATH: str = "data/jeuxboard.db"

    # Auth / persistence collaborator
    BACKEND_URL: str
    BACKEND_ANON_KEY: str

    # Sessions
    SECRET_KEY: str  # For session signing
    SESSION_MAX_AGE: int = 3600 * 24 * 7
    INITIAL_ADMIN_EMAIL: str | None = None  # granted admin at sign-up

    # Logging
    SEQ_URL: str | None = None
    SEQ_API_KEY: str | None = None

    model_config = SettingsConfigDict(env_file="secrets/.env", env_file_encoding="utf-8", extra="ignore")

    @field_validator(*REQUIRED_SETTINGS)
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


def load_settings() -> Settings:
    """Builds the settings object, failing fast when required values are absent.

    Returns:
        Settings: The validated application settings.

    Raises:
        ConfigurationError: If any required setting is missing or blank. The
        message names every offending setting.
    """
    try:
        return Settings()
    except ValidationError as e:
        offending = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise ConfigurationError(
            f"Invalid configuration: {', '.join(offending)} must be set (environment or secrets/.env)."
        ) from e


settings = load_settings()
