"""Configuration for registration admission."""

from functools import lru_cache

from pydantic_settings import BaseSettings

from capstone.topics.enums import TopicType


class RegistrationSettings(BaseSettings):
    """Registration admission settings."""

    # One main supervisor and one co-supervisor
    max_lecturers_per_topic: int = 2

    # Topic types a student may hold in parallel with any other registration
    research_exempt_types: list[str] = [TopicType.SCIENTIFIC_RESEARCH.value]

    class Config:
        env_file = ".env"
        env_prefix = "REGISTRATION_"


@lru_cache
def get_registration_settings() -> RegistrationSettings:
    """Get cached registration settings instance."""
    return RegistrationSettings()
