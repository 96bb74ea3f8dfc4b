from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from .models import EvidenceItem, KeywordAnalysis, TrustLevel, Verdict

logger = logging.getLogger(__name__)


HIGH_QUALITY_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        # science / technology
        r"^(algorithm|data|research|study|technology|science|medicine|physics|chemistry|biology|mathematics|engineering)$",
        r"^(알고리즘|데이터|연구|기술|과학|의학|물리학|화학|생물학|수학|공학)$",
        # AI / IT
        r"^(ai|artificial|intelligence|model|neural|network|machine|learning|deep|google|microsoft|apple|meta|openai|anthropic|claude|chatgpt|gemini|bard)$",
        r"^(인공지능|모델|신경망|머신러닝|딥러닝|구글|마이크로소프트|애플|메타|검색|엔진|블로그|웹사이트|플랫폼)$",
        # concrete concepts
        r"^(definition|explanation|history|geography|culture|language|education|knowledge|information|news|article|report|publication)$",
        r"^(정의|설명|역사|지리|문화|언어|교육|지식|정보|뉴스|기사|보고서|발표|공식|출시|공개|런칭|업데이트|버전)$",
        # dates and times
        r"^(year|month|day|date|time|century|decade|2020|2021|2022|2023|2024|2025)$",
        r"^(년|월|일|날짜|시간|세기|연도)$",
        r"\d+",
        # long compound terms
        r".{4,}",
    )
)

GENERIC_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^(the|and|or|but|in|on|at|to|for|of|with|by|is|are|was|were|be|been|have|has|had|do|does|did)$",
        r"^(그|이|저|것|수|있|없|하|되|된|될|함|임)$",
        r"^.{1,2}$",
    )
)

DEFAULT_COLORS = {
    TrustLevel.LOW: "#ff6b6b",
    TrustLevel.MEDIUM: "#ffd43b",
    TrustLevel.HIGH: "#51cf66",
}

DEFAULT_LABELS = {
    TrustLevel.LOW: "Trust: Low",
    TrustLevel.MEDIUM: "Trust: Medium",
    TrustLevel.HIGH: "Trust: High",
}


def analyze_keywords(keywords: Sequence[str]) -> KeywordAnalysis:
    if not keywords:
        return KeywordAnalysis(is_high_quality=False, is_very_generic=True)

    avg_length = sum(len(keyword) for keyword in keywords) / len(keywords)
    has_domain_term = any(
        pattern.search(keyword) for keyword in keywords for pattern in HIGH_QUALITY_PATTERNS
    )
    all_generic = all(
        any(pattern.search(keyword) for pattern in GENERIC_PATTERNS) for keyword in keywords
    )
    return KeywordAnalysis(
        is_high_quality=has_domain_term and len(keywords) >= 2 and avg_length >= 3,
        is_very_generic=all_generic or avg_length < 3,
        avg_length=avg_length,
        keyword_count=len(keywords),
    )


@dataclass
class TrustScorer:
    """Turn keywords plus evidence into a low/medium/high verdict.

    The scorer estimates how verifiable an answer is from the specificity
    of its keywords and the reliability of the references found for them.
    It never raises; missing signal yields a conservative verdict.
    """

    colors: dict[TrustLevel, str] = field(default_factory=lambda: dict(DEFAULT_COLORS))
    labels: dict[TrustLevel, str] = field(default_factory=lambda: dict(DEFAULT_LABELS))

    def score(self, evidence: Sequence[EvidenceItem] | None, keywords: Sequence[str]) -> Verdict:
        analysis = analyze_keywords(keywords)
        logger.debug("Keyword analysis for %s: %s", list(keywords), analysis)

        if not evidence:
            if analysis.is_very_generic:
                return self._verdict(
                    TrustLevel.LOW, "The keywords are too generic to verify."
                )
            if analysis.avg_length >= 3 and analysis.keyword_count >= 2:
                return self._verdict(
                    TrustLevel.MEDIUM,
                    "No specific references were found, but the content looks plausible.",
                )
            return self._verdict(TrustLevel.LOW, "This content is hard to verify.")

        # non-empty evidence with nothing reliable is all unreliable
        reliable = [item for item in evidence if item.is_reliable is not False]
        if not reliable:
            return self._verdict(
                TrustLevel.LOW, "The content appears subjective or unverifiable."
            )

        if analysis.is_high_quality:
            actionable = sum(1 for item in reliable if item.is_actionable)
            if actionable:
                reason = (
                    f"Found {actionable} related reference(s); "
                    "the keywords are specific enough to verify."
                )
            else:
                reason = "Found related material; the keywords are specific enough to verify."
            return self._verdict(TrustLevel.HIGH, reason)
        return self._verdict(
            TrustLevel.MEDIUM,
            "Found related references, but more specific verification may be needed.",
        )

    def _verdict(self, level: TrustLevel, reason: str) -> Verdict:
        return Verdict(
            score=level,
            label=self.labels[level],
            reason=reason,
            color=self.colors[level],
        )
