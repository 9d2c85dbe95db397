from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    # Application
    app_name: str = Field("Handler Toolkit API")
    app_version: str = Field("1.0.0")

    # Uploads
    upload_dir: str = Field("uploads/")
    upload_max_file_size_bytes: int = Field(10 * 1024 * 1024, gt=0)
    upload_allowed_content_types: List[str] = Field(default_factory=list)
    upload_max_request_size_bytes: Optional[int] = Field(None, gt=0)
    upload_rename_files: bool = Field(True)
    random_name_length: int = Field(25, ge=1)

    # JSON bodies
    json_max_body_bytes: int = Field(1024 * 1024, gt=0)
    json_allow_unknown_fields: bool = Field(False)

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("structured")
    log_file: Optional[str] = Field(None)

    # Rate limiting
    rate_limit_enabled: bool = Field(True)
    rate_limit_default: str = Field("200/minute")
    rate_limit_storage_uri: Optional[str] = Field(None)  # e.g. redis://localhost:6379/0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()

tags_metadata = [
    {
        "name": "Health",
        "description": "Health-check and diagnostics endpoints.",
    },
    {
        "name": "Uploads",
        "description": "Multipart file upload ingestion.",
    },
    {
        "name": "Utilities",
        "description": "Slug and random string helpers.",
    },
]
