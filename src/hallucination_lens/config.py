from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration sourced from environment variables."""

    # Watcher timing (seconds)
    debounce_seconds: float = Field(1.0, ge=0.0)
    poll_interval_seconds: float = Field(5.0, gt=0.0)
    initial_scan_delay_seconds: float = Field(2.0, ge=0.0)

    # Discovery thresholds
    min_response_chars: int = Field(50, ge=0)
    fallback_min_chars: int = Field(100, ge=0)
    fallback_max_elements: int = Field(5, ge=1)

    # Extraction / evidence
    max_keywords: int = Field(5, ge=1)
    query_keywords: int = Field(3, ge=1)
    max_evidence_items: int = Field(2, ge=1)
    evidence_mode: Literal["heuristic", "live"] = "heuristic"
    http_timeout: float = 10.0
    ddg_api_url: str = "https://api.duckduckgo.com/"
    ddg_search_url: str = "https://duckduckgo.com/"
    wikipedia_api_url: str = "https://en.wikipedia.org/api/rest_v1"

    # Settings store
    settings_backend: Literal["memory", "json", "redis"] = "memory"
    settings_path: str = ".hallucination_lens.json"
    redis_url: str = "redis://localhost:6379"
    redis_prefix: str = "hallucination_lens:"

    # Service
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    debug: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "LENS_",
        "case_sensitive": False,
    }


@lru_cache(1)
def get_settings() -> Settings:
    return Settings()
