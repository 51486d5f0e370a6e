"""Application configuration using pydantic-settings."""

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ROSTER = "Scott:2408847,Ross:7707025,Douglas:688541,Jake:541241"


@dataclass(frozen=True, slots=True)
class Participant:
    """A tracked league member: display name plus upstream entry id."""

    name: str
    code: str


def parse_roster(raw: str) -> list[Participant]:
    """Parse a comma-separated ``Name:code`` roster string.

    Raises:
        ValueError: If an item is malformed or a name appears twice
    """
    participants: list[Participant] = []
    seen: set[str] = set()

    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, code = item.partition(":")
        name, code = name.strip(), code.strip()
        if not sep or not name or not code:
            raise ValueError(f"Invalid roster entry '{item}', expected 'Name:code'")
        if name in seen:
            raise ValueError(f"Duplicate participant name '{name}' in roster")
        seen.add(name)
        participants.append(Participant(name=name, code=code))

    return participants


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # FPL API
    fpl_api_base_url: str = "https://fantasy.premierleague.com/api"
    user_agent: str = "LeagueSnapshot/1.0 (FPL mini-league tracker)"

    # League roster - comma-separated Name:entry_id pairs
    league_roster: str = DEFAULT_ROSTER

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Logging
    log_level: str = "INFO"

    # Upstream fetching
    fetch_retries: int = 2
    fetch_backoff_seconds: float = 0.6
    fetch_jitter_seconds: float = 0.25
    fetch_timeout_seconds: float = 30.0
    live_fetch_retries: int = 1

    # Worker pool
    max_concurrent: int = 2
    dispatch_delay_min_seconds: float = 0.2
    dispatch_delay_max_seconds: float = 0.6

    # Aggregation
    aggregation_timeout_seconds: float = 60.0
    record_limit: int = 3
    record_page_limit: int = 20

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def participants(self) -> list[Participant]:
        """Parse the configured roster into participants (roster order)."""
        return parse_roster(self.league_roster)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
