"""Application settings loaded from environment variables via pydantic-settings.

Two sources, highest priority first:

1. Environment variables (``DATABASE_PATH=/var/lib/novelfeed.db``).
2. A ``.env`` file in the working directory, for local development.

Field names map to upper-cased variable names.  Defaults apply when neither
source sets a value.  Tunables that are not deployment-specific (cache TTLs,
delays, retry counts) live in ``config/config.yaml`` instead; see
:mod:`novelfeed.config.loader`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """novelfeed application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Storage ===
    database_path: str = "data/novelfeed.db"

    # === Browser ===
    # Empty = launch a local chromium; otherwise attach over CDP.
    browser_ws_endpoint: str = ""
    browser_headless: bool = True
    screenshot_dir: str = ".screenshot"

    # === Image proxy ===
    # Public origin used when rewriting image URLs to the /bili proxy routes.
    public_origin: str = "http://localhost:8000"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    config_path: str = "config/config.yaml"

    @property
    def uses_remote_browser(self) -> bool:
        """Return ``True`` when an existing browser is attached over CDP."""
        return bool(self.browser_ws_endpoint)
