from __future__ import annotations

import logging
from typing import Any, ClassVar
from urllib.parse import urlparse

from soupsieve import SelectorSyntaxError

from .dom import PageDocument
from .models import PlatformTag

logger = logging.getLogger(__name__)


def identify_platform(hostname: str | None, href: str | None = None) -> PlatformTag:
    hostname = (hostname or "").lower()
    href = (href or "").lower()
    if "chat.openai.com" in hostname or "chatgpt.com" in hostname:
        return PlatformTag.CHATGPT
    if "claude.ai" in hostname:
        return PlatformTag.CLAUDE
    if "gemini.google.com" in hostname or "gemini" in href or "bard.google.com" in hostname:
        return PlatformTag.GEMINI
    return PlatformTag.NONE


def identify_platform_from_url(url: str | None) -> PlatformTag:
    parsed = urlparse(url or "")
    return identify_platform(parsed.hostname, url)


def _select(page: PageDocument, selector: str) -> list[Any]:
    try:
        return list(page.select(selector))
    except (SelectorSyntaxError, ValueError, NotImplementedError) as exc:
        logger.warning("Selector error for %r: %s", selector, exc)
        return []


class DiscoveryStrategy:
    """Priority-ordered union of selector queries, deduplicated by identity."""

    platform: ClassVar[PlatformTag] = PlatformTag.NONE
    selectors: ClassVar[tuple[str, ...]] = ()

    def discover(self, page: PageDocument, *, exclude: str | None = None) -> list[Any]:
        seen: set[int] = set()
        found: list[Any] = []
        for selector in self.selectors:
            matches = _select(page, selector)
            if matches:
                logger.debug("Selector %r matched %d element(s)", selector, len(matches))
            for element in matches:
                if id(element) in seen:
                    continue
                if exclude and page.closest(element, exclude) is not None:
                    continue
                seen.add(id(element))
                found.append(element)
        return found


class ChatGPTDiscovery(DiscoveryStrategy):
    platform = PlatformTag.CHATGPT
    selectors = (
        '[data-message-author-role="assistant"]',
        '[data-message-author-role="assistant"] .markdown',
        '[data-message-author-role="assistant"] div',
        ".group\\/conversation-turn .markdown",
        '[data-testid="conversation-turn-3"] .markdown',
        '[data-testid*="conversation-turn"] [data-message-author-role="assistant"]',
        ".prose",
        ".markdown.prose",
        ".message-content",
        '[class*="ConversationItem"] [data-message-author-role="assistant"]',
        '[class*="Message"][class*="assistant"]',
        "div[data-message-id]",
        ".conversation-content div",
        '[role="presentation"] div',
    )


class ClaudeDiscovery(DiscoveryStrategy):
    platform = PlatformTag.CLAUDE
    selectors = (
        '[data-is-streaming="false"] .font-claude-message',
        ".message-content .prose",
        '[data-testid="user-message"] + div .prose',
    )


class GeminiDiscovery(DiscoveryStrategy):
    platform = PlatformTag.GEMINI
    selectors = (
        ".model-response-text",
        ".response-container .markdown",
        '[data-test-id="model-response"] .markdown',
        '[data-testid="model-response"]',
        ".markdown.prose",
        ".response-content",
        '[role="presentation"] .markdown',
        ".conversation-container .markdown",
        ".message-content",
        ".model-response",
        ".response-text",
        "div[data-response-id]",
        ".response",
        '[class*="response"]',
        '[class*="message"][class*="assistant"]',
        '[class*="model"]',
    )


USER_INPUT_PATTERNS = (
    "user", "human", "you", "input", "prompt", "question", "사용자", "질문", "입력",
)


class GenericDiscovery(DiscoveryStrategy):
    """Broad pattern scan used when the platform selectors find nothing.

    Keeps elements with enough text that do not look user-authored and
    returns only the most recent ``max_elements`` of them.
    """

    selectors = (
        "div[data-message-id]",
        "div[data-message-author-role]",
        'div[data-testid*="conversation"]',
        '[class*="message"]:not([class*="user"]):not([class*="human"])',
        '[class*="response"]',
        '[class*="assistant"]',
        '[class*="bot"]',
        '[class*="ai"]',
        '[class*="model"]',
        '[class*="generated"]',
        '[class*="output"]',
        'div[role="presentation"] div',
        "div[data-testid] div",
        "div[data-test-id] div",
        'div:not([class*="input"]):not([class*="user"]):not([class*="human"])',
    )

    def __init__(self, *, min_chars: int = 100, max_elements: int = 5, ancestor_depth: int = 3) -> None:
        self.min_chars = min_chars
        self.max_elements = max_elements
        self.ancestor_depth = ancestor_depth

    def discover(self, page: PageDocument, *, exclude: str | None = None) -> list[Any]:
        candidates = [
            element
            for element in super().discover(page, exclude=exclude)
            if len(page.text_content(element).strip()) > self.min_chars
            and not page.contains_input(element)
            and not self.is_user_input(page, element)
        ]
        logger.debug("Generic discovery kept %d element(s)", len(candidates))
        return candidates[-self.max_elements:]

    def is_user_input(self, page: PageDocument, element: Any) -> bool:
        if page.get_attribute(element, "data-message-author-role") == "user":
            return True
        parent = page.parent(element)
        for _ in range(self.ancestor_depth):
            if parent is None:
                break
            if page.get_attribute(parent, "data-message-author-role") == "user":
                return True
            parent = page.parent(parent)

        class_name = page.class_name(element).lower()
        test_ids = [
            (page.get_attribute(element, name) or "")
            for name in ("data-testid", "data-test-id")
        ]
        return any(
            pattern in class_name or any(pattern in test_id for test_id in test_ids)
            for pattern in USER_INPUT_PATTERNS
        )


STRATEGIES: dict[PlatformTag, type[DiscoveryStrategy]] = {
    PlatformTag.CHATGPT: ChatGPTDiscovery,
    PlatformTag.CLAUDE: ClaudeDiscovery,
    PlatformTag.GEMINI: GeminiDiscovery,
}


def strategy_for(platform: PlatformTag) -> DiscoveryStrategy:
    """Discovery strategy for ``platform``; unsupported platforms get an empty one."""
    return STRATEGIES.get(platform, DiscoveryStrategy)()
