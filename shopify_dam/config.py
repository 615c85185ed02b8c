from pathlib import Path
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import logging
from functools import lru_cache

DEFAULT_ALLOWED_MIME_TYPES = [
    # images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    # videos
    "video/mp4",
    "video/webm",
    "video/quicktime",
    # audio
    "audio/mpeg",
    "audio/wav",
    # documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    # archives
    "application/zip",
    "application/x-rar-compressed",
    # text
    "text/plain",
    "text/csv",
    "application/json",
]


class Settings(BaseSettings):
    """
    Centralized configuration of the asset manager with type validation.
    Automatically reads variables from the environment and an optional .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- General Settings ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE_NAME: str = "dam.log"

    # --- Catalog Storage ---
    DAM_DATA_PATH: str = "/tmp/dam-data"
    DAM_CATALOG_FILE: str = "catalog.json"
    DAM_ROOT_NAME: str = "My Files"

    # --- Upload Limits ---
    DAM_MAX_FILE_SIZE: int = Field(
        50 * 1024 * 1024, validation_alias="DAM_MAX_FILE_SIZE"
    )  # 50 MB default
    DAM_ALLOWED_MIME_TYPES: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES)
    )

    # --- Access Control ---
    DAM_READ_TAGS: List[str] = Field(default_factory=lambda: ["admin", "affiliate"])
    DAM_WRITE_TAGS: List[str] = Field(default_factory=lambda: ["admin"])

    # --- Listing Defaults ---
    DAM_SEARCH_LIMIT: int = 50
    DAM_RECENT_LIMIT: int = 20

    # --- Shopify Content Host (optional) ---
    SHOPIFY_STORE_DOMAIN: Optional[str] = None
    SHOPIFY_ACCESS_TOKEN: Optional[str] = None
    SHOPIFY_API_VERSION: str = "2024-01"
    SHOPIFY_REQUEST_TIMEOUT: float = 30.0

    # --- HTTP Server ---
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8000

    @field_validator("DAM_READ_TAGS", "DAM_WRITE_TAGS")
    @classmethod
    def normalize_tags(cls, value: List[str]) -> List[str]:
        return [tag.strip().lower() for tag in value if tag and tag.strip()]

    @field_validator("DAM_ALLOWED_MIME_TYPES")
    @classmethod
    def normalize_mime_types(cls, value: List[str]) -> List[str]:
        return [mime.strip().lower() for mime in value if mime and mime.strip()]

    @model_validator(mode="after")
    def validate_limits_and_host(self):
        if self.DAM_MAX_FILE_SIZE <= 0:
            raise ValueError("DAM_MAX_FILE_SIZE must be a positive number of bytes")
        if not self.DAM_ROOT_NAME.strip():
            raise ValueError("DAM_ROOT_NAME cannot be empty")

        # Domain and token only make sense together.
        has_domain = bool(self.SHOPIFY_STORE_DOMAIN and self.SHOPIFY_STORE_DOMAIN.strip())
        has_token = bool(self.SHOPIFY_ACCESS_TOKEN and self.SHOPIFY_ACCESS_TOKEN.strip())
        if has_domain != has_token:
            raise ValueError(
                "SHOPIFY_STORE_DOMAIN and SHOPIFY_ACCESS_TOKEN must be set together"
            )
        if not has_domain:
            logging.warning(
                "Shopify credentials not configured. Uploads will be rejected until they are set."
            )
        return self

    @property
    def shopify_configured(self) -> bool:
        return bool(self.SHOPIFY_STORE_DOMAIN and self.SHOPIFY_ACCESS_TOKEN)

    @property
    def DATA_DIR(self) -> Path:
        return Path(self.DAM_DATA_PATH)

    @property
    def CATALOG_PATH(self) -> Path:
        return self.DATA_DIR / self.DAM_CATALOG_FILE

    @property
    def LOG_FILE(self) -> Path:
        return self.DATA_DIR / self.LOG_FILE_NAME


@lru_cache()
def get_settings() -> Settings:
    """
    Returns a cached instance of the application settings.
    The first call to this function will initialize the settings.
    """
    settings = Settings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings
