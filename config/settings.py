"""
Configuration settings for the application
"""
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 50MB in bytes
MAX_BODY_BYTES = 50 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # HTTP server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    service_version: str = Field(default="1.0.0", alias="SERVICE_VERSION")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    max_body_bytes: int = Field(default=MAX_BODY_BYTES, alias="MAX_BODY_BYTES")

    # Scratch storage for downloaded stems and mixed output
    scratch_dir: Path = Field(default=Path("./temp"), alias="SCRATCH_DIR")

    # Stem downloads
    download_timeout_seconds: float = Field(default=60.0, alias="DOWNLOAD_TIMEOUT_SECONDS")

    # ffmpeg mixing
    ffmpeg_binary: str = Field(default="ffmpeg", alias="FFMPEG_BINARY")
    mp3_bitrate: str = Field(default="192k", alias="MP3_BITRATE")
    mix_normalize: bool = Field(default=False, alias="MIX_NORMALIZE")

    # Logging (stderr only when unset)
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,  # Allow both field name and alias
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# Instantiate settings object
settings = Settings()
