import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_cors_origins_accept_comma_list_and_json():
    assert Settings(cors_origins="http://a.test, http://b.test").cors_origins == ["http://a.test", "http://b.test"]
    assert Settings(cors_origins='["http://c.test"]').cors_origins == ["http://c.test"]


def test_sync_intervals_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(sync_debounce_seconds=0)
    with pytest.raises(ValidationError):
        Settings(sync_refresh_interval_seconds=-1)


def test_insert_chunk_size_is_at_least_one():
    assert Settings(lab_schedule_insert_chunk_size=0).lab_schedule_insert_chunk_size == 1


def test_generator_defaults_and_limits():
    settings = Settings()
    assert settings.generator_max_attempts == 50
    assert settings.generator_teacher_daily_limit == 4
    with pytest.raises(ValidationError):
        Settings(generator_max_attempts=0)
