from __future__ import annotations

import html
import logging
from typing import Any, Protocol, runtime_checkable

from .dom import SoupPage
from .models import OverlayPayload

logger = logging.getLogger(__name__)

OVERLAY_CLASS = "hallucination-lens-overlay"
OVERLAY_SELECTOR = f".{OVERLAY_CLASS}"
ANCHOR_CLASSES = ("group", "message", "conversation-turn")


@runtime_checkable
class OverlayPresenter(Protocol):
    def render(self, payload: OverlayPayload) -> None: ...

    def clear_all(self) -> None: ...


def build_overlay_html(payload: OverlayPayload, platform: str = "") -> str:
    """Assemble the overlay fragment; every interpolated value is escaped."""
    verdict = payload.verdict
    esc = html.escape
    keyword_tags = "".join(
        f'<span class="hl-keyword-tag">{esc(keyword)}</span>' for keyword in payload.keywords
    )
    actionable = [item for item in payload.evidence if item.is_actionable]
    if actionable:
        items = "".join(
            '<div class="hl-result-item">'
            f'<a href="{esc(item.url)}" target="_blank" rel="noopener noreferrer" class="hl-result-link">'
            f'<div class="hl-result-title">{esc(item.title)}</div>'
            f'<div class="hl-result-snippet">{esc(item.snippet)}</div>'
            "</a></div>"
            for item in actionable
        )
        results = (
            '<div class="hl-section-title">Related references</div>'
            f'<div class="hl-result-list">{items}</div>'
        )
    elif payload.evidence:
        results = (
            '<div class="hl-section-title">References</div>'
            '<div class="hl-no-results">No related references were found.</div>'
        )
    else:
        results = (
            '<div class="hl-section-title">References</div>'
            '<div class="hl-no-results">No lookup could be performed.</div>'
        )
    return (
        f'<div class="{OVERLAY_CLASS}" data-platform="{esc(platform)}" data-score="{esc(verdict.score.value)}">'
        '<div class="hl-header">'
        f'<div class="hl-trust-indicator" style="background-color: {esc(verdict.color)}">'
        f'<span class="hl-trust-label">{esc(verdict.label)}</span>'
        f'<span class="hl-trust-reason">{esc(verdict.reason)}</span>'
        "</div></div>"
        '<div class="hl-content">'
        '<div class="hl-keywords"><div class="hl-section-title">Analyzed keywords</div>'
        f'<div class="hl-keyword-tags">{keyword_tags}</div></div>'
        f'<div class="hl-results">{results}</div>'
        "</div></div>"
    )


class SoupOverlayPresenter:
    """Insert overlay fragments into a ``SoupPage`` next to their responses."""

    def __init__(self, page: SoupPage, *, platform: str = "", ancestor_depth: int = 3) -> None:
        self._page = page
        self._platform = platform
        self._ancestor_depth = ancestor_depth
        self._overlays: dict[int, tuple[Any, Any]] = {}
        self.payloads: list[OverlayPayload] = []

    def render(self, payload: OverlayPayload) -> None:
        element = payload.element
        previous = self._overlays.pop(id(element), None)
        if previous is not None and previous[0] is element:
            self._page.remove(previous[1])
            self.payloads = [p for p in self.payloads if p.element is not element]

        anchor = self._insert_anchor(element)
        nodes = self._page.insert_after(anchor, build_overlay_html(payload, self._platform))
        if not nodes:
            logger.warning("Overlay fragment produced no element")
            return
        self._overlays[id(element)] = (element, nodes[0])
        self.payloads.append(payload)
        logger.info("Rendered %s overlay", payload.verdict.score.value)

    def clear_all(self) -> None:
        for overlay in self._page.select(OVERLAY_SELECTOR):
            self._page.remove(overlay)
        self._overlays.clear()
        self.payloads = []

    def _insert_anchor(self, element: Any) -> Any:
        """Nearest conversation-turn-like ancestor, else the element's parent."""
        page = self._page
        anchor = page.parent(element)
        if anchor is None:
            anchor = element
        current = element
        for _ in range(self._ancestor_depth):
            parent = page.parent(current)
            if parent is None or parent is page.body:
                break
            current = parent
            classes = page.class_name(current).split()
            if any(name in classes for name in ANCHOR_CLASSES):
                anchor = current
                break
        if anchor is page.body:
            return element
        return anchor
