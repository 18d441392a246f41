"""Engine configuration."""

from pathlib import Path
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.context import DEFAULT_ASK_THRESHOLD


class Settings(BaseSettings):
    """Settings loaded from HEALTH_ENGINE_* environment variables or .env."""

    log_level: str = "INFO"
    ask_threshold: int = Field(default=DEFAULT_ASK_THRESHOLD, ge=0, le=100)
    # JSON object, e.g. {"IN-RJ": 1.1, "AE": 1.2}
    water_overrides: Dict[str, float] = Field(default_factory=dict)
    cors_origins: str = "*"
    trace_dir: Path = Path("traces")

    model_config = SettingsConfigDict(
        env_prefix="HEALTH_ENGINE_",
        env_file=".env",
        extra="ignore",
    )


def parse_cors_origins(raw: str) -> List[str]:
    """Parse a comma separated origin list; empty or '*' allows all."""
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return ["*"]
    return [origin.strip() for origin in cleaned.split(",") if origin.strip()]


def get_settings() -> Settings:
    return Settings()
