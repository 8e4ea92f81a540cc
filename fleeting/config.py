"""Application configuration via environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Fleeting application settings loaded from environment variables."""

    # Public URL for share links
    base_url: str = "http://localhost:8080"

    # Data paths
    data_dir: Path = Path("/data")
    db_path: Path = Path("/data/fleeting.db")
    blob_dir: Path = Path("/data/uploads")

    # Lifecycle
    default_expiry_minutes: int = 10
    sweep_interval_seconds: float = 300
    sweep_enabled: bool = True

    # Short ids
    short_id_length: int = 10

    # Upload limits
    min_password_length: int = 4
    max_text_length: int = 1_000_000
    max_upload_size_mb: int = 25

    # CORS (comma-separated extra origins, in addition to localhost defaults)
    cors_origins: str = ""

    model_config = {
        "env_prefix": "FLEETING_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


# Singleton instance
settings = Settings()
