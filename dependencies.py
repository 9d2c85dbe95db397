"""
Dependency injection setup for settings and the upload ingestor.
"""

from functools import lru_cache
from typing import Annotated
from fastapi import Depends

from config.config import Settings, settings
from services.uploads import UploadIngestor


def get_settings() -> Settings:
    return settings


@lru_cache()
def get_upload_ingestor() -> UploadIngestor:
    """Get singleton upload ingestor built from settings."""
    return UploadIngestor.from_settings(get_settings())


def get_upload_dir(settings: Annotated[Settings, Depends(get_settings)]) -> str:
    """Get the directory uploads are written to."""
    return settings.upload_dir


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
UploadIngestorDep = Annotated[UploadIngestor, Depends(get_upload_ingestor)]
UploadDirDep = Annotated[str, Depends(get_upload_dir)]
