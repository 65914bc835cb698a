from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "Slotwise API"
    api_prefix: str = "/api"

    database_url: str = "sqlite+pysqlite:///./slotwise.db"

    # Reconciliation loop timing, in seconds.
    sync_debounce_seconds: float = 0.1
    sync_refresh_interval_seconds: float = 30.0

    lab_schedule_insert_chunk_size: int = 100

    # Whole-timetable generation.
    generator_teacher_daily_limit: int = 4
    generator_max_attempts: int = 50
    generator_random_seed: int | None = None

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("sync_debounce_seconds", "sync_refresh_interval_seconds")
    @classmethod
    def validate_positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Sync intervals must be positive")
        return value

    @field_validator("lab_schedule_insert_chunk_size")
    @classmethod
    def validate_chunk_size(cls, value: int) -> int:
        return max(1, value)

    @field_validator("generator_teacher_daily_limit", "generator_max_attempts")
    @classmethod
    def validate_generator_limits(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Generator limits must be at least 1")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
