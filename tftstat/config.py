# config.py – Chargement des paramètres via pydantic-settings

from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Table des ligues crawlées à chaque cycle (tier, division)
DEFAULT_CRAWL_TARGETS = [
    # "CHALLENGER I",
    # "GRANDMASTER I",
    # "MASTER I",
    "DIAMOND I",
    "DIAMOND II",
    "DIAMOND III",
    "DIAMOND IV",
    "PLATINUM I",
    "PLATINUM II",
    "PLATINUM III",
    "PLATINUM IV",
    "GOLD I",
    "GOLD II",
    "GOLD III",
]


class Settings(BaseSettings):
    # — API Keys —
    RIOT_API_KEY: str

    # — Document store —
    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DB: str = "tft"
    APP_NAME: str = "tft_stat"
    SUMMONERS_COLLECTION: str = "summoners_v1"
    STANDINGS_COLLECTION: str = "standings_v1"
    MATCHES_COLLECTION: str = "matches_v3"

    # — Crawl —
    REGIONS: List[str] = ["na1", "euw1", "kr", "jp1", "br1"]
    CRAWL_TARGETS: List[str] = DEFAULT_CRAWL_TARGETS
    PLAYER_CONCURRENCY: int = 3        # joueurs traités en parallèle par région
    PARTICIPANT_CONCURRENCY: int = 1   # 1 = participants résolus séquentiellement
    MATCH_ID_COUNT: int = 10
    LADDER_MAX_ATTEMPTS: int = 5
    LADDER_RETRY_DELAY: float = 20.0   # secondes
    CYCLE_PAUSE: float = 5.0           # pause après un cycle avorté

    # — Riot API quota —
    RATE_LIMIT_MAX: int = 100
    RATE_LIMIT_WINDOW: float = 120.0

    # — Ops —
    LOG_LEVEL: str = "INFO"
    HEALTH_PORT: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("CRAWL_TARGETS")
    @classmethod
    def _check_targets(cls, value: List[str]) -> List[str]:
        for target in value:
            if len(target.split()) != 2:
                raise ValueError(f"Crawl target must be 'TIER DIVISION', got {target!r}")
        return [" ".join(t.upper().split()) for t in value]

    @field_validator("PLAYER_CONCURRENCY", "PARTICIPANT_CONCURRENCY", "LADDER_MAX_ATTEMPTS")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @property
    def crawl_targets(self) -> List[Tuple[str, str]]:
        """CRAWL_TARGETS as (tier, division) pairs."""
        return [tuple(t.split()) for t in self.CRAWL_TARGETS]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
