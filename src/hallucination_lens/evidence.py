from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable
from urllib.parse import quote, quote_plus

import httpx

from .config import Settings, get_settings
from .models import SENTINEL_URL, EvidenceItem

logger = logging.getLogger(__name__)


FACTUAL_TERMS = (
    # science / technology
    "science", "technology", "research", "study", "data", "algorithm",
    "computer", "internet", "physics", "chemistry", "biology", "mathematics",
    "engineering", "medicine", "health", "ai", "artificial", "intelligence",
    "model", "neural", "network", "machine", "learning", "deep", "google",
    "microsoft", "apple", "meta", "openai", "anthropic", "claude", "chatgpt",
    "gemini", "bard",
    "과학", "기술", "연구", "데이터", "알고리즘", "컴퓨터", "인터넷", "물리학",
    "화학", "생물학", "수학", "공학", "의학", "건강", "인공지능", "모델", "신경망",
    "머신러닝", "딥러닝", "구글", "마이크로소프트", "애플", "메타", "검색", "엔진",
    "블로그", "웹사이트", "플랫폼",
    # history / geography / dates
    "history", "geography", "country", "city", "world", "culture", "language",
    "population", "year", "month", "day", "date", "time", "century", "decade",
    "2020", "2021", "2022", "2023", "2024", "2025",
    "역사", "지리", "국가", "도시", "세계", "문화", "언어", "인구", "년", "월", "일",
    "날짜", "시간", "세기", "연도",
    # general knowledge
    "definition", "meaning", "explanation", "how", "what", "when", "where",
    "why", "who", "which",
    "정의", "의미", "설명", "어떻게", "무엇", "언제", "어디서", "왜", "누구", "어느",
    # education / publications
    "education", "school", "university", "book", "knowledge", "information",
    "news", "article", "report", "publication",
    "교육", "학습", "학교", "대학교", "책", "지식", "정보", "뉴스", "기사", "보고서",
    "발표", "공식", "출시", "공개", "런칭", "업데이트", "버전",
)

SUBJECTIVE_TERMS = (
    "opinion", "think", "believe", "feel", "personal", "subjective",
    "preference", "taste", "best", "worst", "favorite", "recommend", "suggest",
    "advice",
    "의견", "생각", "믿다", "느끼다", "개인적", "주관적", "선호", "취향", "최고",
    "최악", "좋아하는", "추천", "제안", "조언",
)


def _matches_any(keywords: Sequence[str], terms: Sequence[str]) -> bool:
    for keyword in keywords:
        lowered = keyword.lower()
        for term in terms:
            if lowered in term or term in lowered:
                return True
    return False


@runtime_checkable
class EvidenceSource(Protocol):
    """Resolve keywords to candidate references. Implementations never raise."""

    async def resolve(self, keywords: Sequence[str]) -> list[EvidenceItem]:
        ...


class HeuristicEvidenceSource:
    """Offline evidence generator driven by fixed term tables."""

    name = "heuristic"

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def classify(self, keywords: Sequence[str]) -> dict[str, bool]:
        avg_length = sum(len(k) for k in keywords) / len(keywords) if keywords else 0.0
        return {
            "factual": _matches_any(keywords, FACTUAL_TERMS),
            "subjective": _matches_any(keywords, SUBJECTIVE_TERMS),
            "complex": avg_length > 4 and len(keywords) >= 3,
        }

    async def resolve(self, keywords: Sequence[str]) -> list[EvidenceItem]:
        keywords = [k for k in keywords if isinstance(k, str)]
        if not keywords or all(len(k) <= 1 for k in keywords):
            return []
        flags = self.classify(keywords)
        logger.debug("Heuristic classification for %s: %s", keywords, flags)
        if flags["factual"] or flags["complex"]:
            return self._informative_items(keywords)
        if flags["subjective"]:
            return [
                EvidenceItem(
                    title="Subjective or opinion content",
                    url=SENTINEL_URL,
                    snippet="This answer may contain subjective opinions or personal views.",
                    is_reliable=False,
                    source=self.name,
                )
            ]
        return []

    def _informative_items(self, keywords: Sequence[str]) -> list[EvidenceItem]:
        query = " ".join(keywords[: self._settings.query_keywords])
        search_url = self._settings.ddg_search_url
        items = [
            EvidenceItem(
                title=f"Information about {keywords[0]}",
                url=f"{search_url}?q={quote_plus(query)}",
                snippet=(
                    f"Found information related to {', '.join(keywords[:2])}. "
                    "See the search results for details."
                ),
                is_reliable=True,
                source=self.name,
            )
        ]
        if len(keywords) > 1:
            items.append(
                EvidenceItem(
                    title=f"Material on {keywords[1]}",
                    url=f"{search_url}?q={quote_plus(keywords[1])}",
                    snippet=f"Additional information and references about {keywords[1]}.",
                    is_reliable=True,
                    source=self.name,
                )
            )
        return items[: self._settings.max_evidence_items]


class LiveEvidenceSource:
    """Knowledge lookup against DuckDuckGo Instant Answers, then Wikipedia."""

    name = "live"

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    async def resolve(self, keywords: Sequence[str]) -> list[EvidenceItem]:
        if not keywords:
            return []
        query = " ".join(keywords[: self._settings.query_keywords])
        limit = self._settings.max_evidence_items
        try:
            if self._client is not None:
                return await self._lookup(self._client, query, limit)
            async with httpx.AsyncClient(timeout=self._settings.http_timeout) as client:
                return await self._lookup(client, query, limit)
        except Exception:
            logger.exception("Evidence lookup failed for query %r", query)
            return []

    async def _lookup(self, client: httpx.AsyncClient, query: str, limit: int) -> list[EvidenceItem]:
        logger.info("Searching references for %r", query)
        results = await self._query_duckduckgo(client, query)
        if not results:
            results = await self._query_wikipedia(client, query, limit)
        if not results:
            return [
                EvidenceItem(
                    title="No matching reference found",
                    url=SENTINEL_URL,
                    snippet="No specific reference could be found for these keywords.",
                    source=self.name,
                )
            ]
        return results[:limit]

    async def _query_duckduckgo(self, client: httpx.AsyncClient, query: str) -> list[EvidenceItem]:
        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
        try:
            response = await client.get(self._settings.ddg_api_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("DuckDuckGo lookup failed: %s", exc)
            return []
        if not isinstance(payload, dict):
            return []

        output: list[EvidenceItem] = []
        abstract = (payload.get("Abstract") or "").strip()
        if abstract:
            output.append(
                EvidenceItem(
                    title=payload.get("Heading") or "Summary",
                    url=payload.get("AbstractURL") or SENTINEL_URL,
                    snippet=abstract,
                    source="DuckDuckGo",
                )
            )
        for topic in (payload.get("RelatedTopics") or [])[:2]:
            if not isinstance(topic, dict):
                continue
            text = topic.get("Text")
            link = topic.get("FirstURL")
            if not text or not link:
                continue
            output.append(
                EvidenceItem(
                    title=text.split(" - ")[0] or "Related topic",
                    url=link,
                    snippet=text,
                    source="DuckDuckGo",
                )
            )
        answer = str(payload.get("Answer") or "").strip()
        if answer:
            output.append(
                EvidenceItem(
                    title="Direct answer",
                    url=payload.get("AnswerURL") or SENTINEL_URL,
                    snippet=answer,
                    source="DuckDuckGo",
                )
            )
        return output

    async def _query_wikipedia(
        self, client: httpx.AsyncClient, query: str, limit: int
    ) -> list[EvidenceItem]:
        base = self._settings.wikipedia_api_url.rstrip("/")
        try:
            response = await client.get(f"{base}/page/search/{quote(query)}")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Wikipedia search failed: %s", exc)
            return []
        pages = payload.get("pages") if isinstance(payload, dict) else None
        if not pages:
            return []

        output: list[EvidenceItem] = []
        for page in pages[:limit]:
            key = page.get("key") if isinstance(page, dict) else None
            if not key:
                continue
            try:
                summary_response = await client.get(f"{base}/page/summary/{quote(key, safe='')}")
                summary_response.raise_for_status()
                summary = summary_response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Wikipedia summary for %s failed: %s", key, exc)
                continue
            extract = summary.get("extract") if isinstance(summary, dict) else None
            if not extract:
                continue
            page_url = (
                ((summary.get("content_urls") or {}).get("desktop") or {}).get("page")
                or f"https://en.wikipedia.org/wiki/{key}"
            )
            output.append(
                EvidenceItem(
                    title=summary.get("title") or key,
                    url=page_url,
                    snippet=extract,
                    source="Wikipedia",
                )
            )
        return output


def build_evidence_source(settings: Settings | None = None) -> EvidenceSource:
    settings = settings or get_settings()
    if settings.evidence_mode == "live":
        return LiveEvidenceSource(settings)
    return HeuristicEvidenceSource(settings)
