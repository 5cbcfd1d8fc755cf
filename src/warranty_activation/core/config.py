from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"
    secret_key: str = "change-me"

    database_url: str = "sqlite:///./warranty.db"
    redis_url: str = "redis://localhost:6379/0"

    storage_backend: Literal["local", "s3"] = "local"
    local_storage_path: Path = Path("uploads")

    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_bucket: str = "warranty-invoices"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None

    veryfi_client_id: str = ""
    veryfi_client_secret: str = ""
    veryfi_username: str = ""
    veryfi_api_key: str = ""
    veryfi_base_url: str = "https://api.veryfi.com/api/v8"
    ocr_timeout_seconds: float = 30.0

    # Days either side of the installation date an invoice may be dated.
    warranty_date_window: int = 21

    max_upload_bytes: int = 10 * 1024 * 1024

    init_admin_username: str | None = None
    init_admin_password: str | None = None

    access_token_exp_minutes: int = 60 * 24 * 7


settings = Settings()
