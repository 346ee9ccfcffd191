"""Configuration for the topic lifecycle engine."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class TopicSettings(BaseSettings):
    """Topic lifecycle settings."""

    # Actor recorded on capacity-driven (automatic) ledger entries
    system_actor: str = "system"

    # Upper bound for a transaction commit before it is reported as a storage timeout
    storage_timeout_seconds: float = 5.0

    class Config:
        env_file = ".env"
        env_prefix = "TOPIC_"


@lru_cache
def get_topic_settings() -> TopicSettings:
    """Get cached topic settings instance."""
    return TopicSettings()
