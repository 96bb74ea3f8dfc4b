from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SENTINEL_URL = "#"


class PlatformTag(str, Enum):
    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    GEMINI = "gemini"
    NONE = "none"

    @property
    def supported(self) -> bool:
        return self is not PlatformTag.NONE


class TrustLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _TRUST_RANK[self]


_TRUST_RANK = {TrustLevel.LOW: 0, TrustLevel.MEDIUM: 1, TrustLevel.HIGH: 2}


class WatcherState(str, Enum):
    IDLE = "idle"
    OBSERVING = "observing"
    DISABLED = "disabled"
    TORN_DOWN = "torn_down"


class EvidenceItem(BaseModel):
    title: str
    url: str = SENTINEL_URL
    snippet: str = ""
    is_reliable: bool = True
    source: str = ""

    @property
    def is_actionable(self) -> bool:
        """Whether the item points at an addressable reference."""
        return bool(self.url) and self.url != SENTINEL_URL


class KeywordAnalysis(BaseModel):
    is_high_quality: bool = False
    is_very_generic: bool = True
    avg_length: float = 0.0
    keyword_count: int = Field(0, ge=0)


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: TrustLevel
    label: str
    reason: str
    color: str


@dataclass(frozen=True)
class OverlayPayload:
    """Everything the presenter needs to render one overlay."""

    element: Any
    verdict: Verdict
    evidence: list[EvidenceItem] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
