"""Configuration for the Studycore API server."""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_DATABASE_URL = "sqlite:///./studycore.db"
DEFAULT_WEAK_TOPIC_MAX_PER_TOPIC = 10
DEFAULT_HISTORY_PAGE_LIMIT = 10


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """
    Database URL and tunables the server needs.

    Every field is overridable at construction for testing; environment
    variables fill in whatever was left unset.
    """
    database_url: Optional[str] = None
    weak_topic_max_per_topic: Optional[int] = None
    history_page_limit: Optional[int] = None
    history_max_limit: int = 100
    cors_origins: Optional[tuple] = None

    def __post_init__(self):
        if self.database_url is None:
            self.database_url = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)

        if self.weak_topic_max_per_topic is None:
            self.weak_topic_max_per_topic = _env_int(
                "WEAK_TOPIC_MAX_PER_TOPIC", DEFAULT_WEAK_TOPIC_MAX_PER_TOPIC)
        if self.history_page_limit is None:
            self.history_page_limit = _env_int("HISTORY_PAGE_LIMIT", DEFAULT_HISTORY_PAGE_LIMIT)

        if self.cors_origins is None:
            origins = os.environ.get("CORS_ORIGINS", "http://localhost:3000")
            self.cors_origins = tuple(o.strip() for o in origins.split(",") if o.strip())
