from pathlib import Path
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, Optional
from functools import lru_cache

# Required credential settings per provider, keyed by the provider's
# required-parameter key.
PROVIDER_SETTINGS = {
    "webdav": {
        "url": "WEBDAV_URL",
        "username": "WEBDAV_USERNAME",
        "password": "WEBDAV_PASSWORD",
    },
    "dropbox": {
        "app_key": "DROPBOX_APP_KEY",
        "app_secret": "DROPBOX_APP_SECRET",
        "refresh_token": "DROPBOX_REFRESH_TOKEN",
        "folder": "DROPBOX_FOLDER",
    },
    "googleDrive": {
        "credentials_json": "GDRIVE_CREDENTIALS_JSON",
        "token_json": "GDRIVE_TOKEN_JSON",
        "folder_id": "GDRIVE_FOLDER_ID",
    },
}


class Settings(BaseSettings):
    """
    Centralized application configuration with type validation.
    Automatically reads variables from the environment and the .env file.
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- General Settings ---
    CLOUD_PROVIDER: str = "webdav"  # "webdav", "dropbox" or "googleDrive"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30

    # --- WebDAV Settings (optional) ---
    WEBDAV_URL: Optional[str] = None
    WEBDAV_USERNAME: Optional[str] = None
    WEBDAV_PASSWORD: Optional[str] = None

    # --- Dropbox Settings (optional) ---
    DROPBOX_APP_KEY: Optional[str] = None
    DROPBOX_APP_SECRET: Optional[str] = None
    DROPBOX_REFRESH_TOKEN: Optional[str] = None
    DROPBOX_FOLDER: str = ""

    # --- Google Drive Settings (optional) ---
    GDRIVE_CREDENTIALS_JSON: Optional[str] = None
    GDRIVE_TOKEN_JSON: Optional[str] = None
    GDRIVE_FOLDER_ID: Optional[str] = None

    # --- Constants and Computed Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent

    @model_validator(mode="after")
    def validate_provider_settings(self):
        provider = self.CLOUD_PROVIDER
        if provider not in PROVIDER_SETTINGS:
            raise ValueError(
                f"Invalid CLOUD_PROVIDER '{provider}'. Must be one of: {', '.join(PROVIDER_SETTINGS)}."
            )

        for key in PROVIDER_SETTINGS[provider].values():
            if key == "DROPBOX_FOLDER":
                # An empty string means the Dropbox root
                continue
            value = getattr(self, key)
            if not value or not str(value).strip():
                raise ValueError(
                    f"{key} is required and cannot be empty when CLOUD_PROVIDER is '{provider}'"
                )
        return self

    def credentials(self) -> Dict[str, str]:
        """Returns the selected provider's credentials keyed by parameter key."""
        return {
            param: getattr(self, field)
            for param, field in PROVIDER_SETTINGS[self.CLOUD_PROVIDER].items()
        }

    @property
    def LOG_FILE(self) -> Path:
        return self.BASE_DIR / "app.log"


@lru_cache()
def get_settings() -> Settings:
    """
    Returns a cached instance of the application settings.
    The first call to this function will initialize the settings.
    """
    return Settings()
