"""Runtime settings, read from DEPBUMP_* environment variables."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CACHE_FILENAME = ".depbump-cache"


def default_cache_file() -> Path:
    return Path.home() / CACHE_FILENAME


class Settings(BaseSettings):
    """Settings shared by the CLI and the web API.

    Each field is read from the matching upper-case variable with the
    DEPBUMP_ prefix, e.g. ``DEPBUMP_CACHE_TTL``. Empty variables fall back
    to the defaults; invalid values raise ``pydantic.ValidationError``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEPBUMP_",
        env_ignore_empty=True,
        extra="ignore",
    )

    cache_file: Path = Field(default_factory=default_cache_file)
    cache_ttl: int = Field(600, gt=0, description="Cache entry lifetime in seconds")
    timeout: float = Field(10.0, gt=0, description="Registry request timeout in seconds")
    max_concurrency: int = Field(6, ge=1)
    no_cache: bool = False

    @field_validator("cache_file")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()

    @property
    def use_cache(self) -> bool:
        return not self.no_cache
