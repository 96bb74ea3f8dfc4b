"""
Page document adapter
BeautifulSoup-backed render tree with MutationObserver-style notifications
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable
from urllib.parse import urlparse

import soupsieve
from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

CODE_BLOCK_SELECTOR = "pre, code"
INPUT_SELECTOR = "input, textarea"


@dataclass(frozen=True)
class MutationRecord:
    type: str
    target: Any
    added_nodes: tuple = ()
    removed_nodes: tuple = ()
    attribute_name: Optional[str] = None


MutationCallback = Callable[[list[MutationRecord]], None]


class Subscription:
    """Handle returned by ``subscribe``; ``cancel`` stops delivery."""

    def __init__(self, owner: "SoupPage", callback: MutationCallback) -> None:
        self._owner = owner
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._owner._unsubscribe(self)


@runtime_checkable
class PageDocument(Protocol):
    url: str
    hostname: str

    def select(self, selector: str) -> list[Any]: ...

    def closest(self, element: Any, selector: str) -> Any | None: ...

    def is_element(self, node: Any) -> bool: ...

    def text_content(self, element: Any) -> str: ...

    def response_text(self, element: Any) -> str: ...

    def get_attribute(self, element: Any, name: str) -> str | None: ...

    def class_name(self, element: Any) -> str: ...

    def parent(self, element: Any) -> Any | None: ...

    def contains_input(self, element: Any) -> bool: ...

    def subscribe(self, callback: MutationCallback) -> Subscription: ...


class SoupPage:
    """In-memory host page.

    Structural changes made through the mutation helpers are queued and
    delivered to subscribers as one batch on the next event-loop iteration.
    Without a running loop the queue is held until ``flush`` is called.
    """

    def __init__(self, html: str, url: str, *, parser: str = "html.parser") -> None:
        self.url = url
        self.hostname = urlparse(url).hostname or ""
        self._parser = parser
        self._soup = BeautifulSoup(html or "", parser)
        if self._soup.body is None:
            body = self._soup.new_tag("body")
            for child in list(self._soup.contents):
                body.append(child.extract())
            self._soup.append(body)
        self._subscriptions: list[Subscription] = []
        self._pending: list[MutationRecord] = []
        self._flush_scheduled = False

    @property
    def soup(self) -> BeautifulSoup:
        return self._soup

    @property
    def body(self) -> Tag:
        return self._soup.body

    def render(self) -> str:
        return str(self._soup)

    # -- queries ---------------------------------------------------------

    def select(self, selector: str) -> list[Tag]:
        return self._soup.select(selector)

    def select_one(self, selector: str) -> Tag | None:
        return self._soup.select_one(selector)

    def closest(self, element: Tag, selector: str) -> Tag | None:
        return soupsieve.closest(selector, element)

    def is_element(self, node: Any) -> bool:
        return isinstance(node, Tag) and not isinstance(node, BeautifulSoup)

    def text_content(self, element: Tag) -> str:
        return element.get_text()

    def response_text(self, element: Tag) -> str:
        """Text of ``element`` without code blocks; the page itself is untouched."""
        clone = copy.copy(element)
        for block in clone.select(CODE_BLOCK_SELECTOR):
            block.extract()
        return clone.get_text()

    def get_attribute(self, element: Tag, name: str) -> str | None:
        value = element.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def class_name(self, element: Tag) -> str:
        return " ".join(element.get("class") or [])

    def parent(self, element: Tag) -> Tag | None:
        parent = element.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            return None
        return parent

    def contains_input(self, element: Tag) -> bool:
        return element.select_one(INPUT_SELECTOR) is not None

    # -- mutation --------------------------------------------------------

    def append_html(self, html: str, parent_selector: str | None = None) -> list[Tag]:
        """Parse ``html`` and append its nodes to the first ``parent_selector`` match."""
        parent = self._soup.select_one(parent_selector) if parent_selector else self.body
        if parent is None:
            raise LookupError(f"No element matches {parent_selector!r}")
        fragment = BeautifulSoup(html, self._parser)
        nodes = [node.extract() for node in list(fragment.contents)]
        for node in nodes:
            parent.append(node)
        self._record(MutationRecord(type="childList", target=parent, added_nodes=tuple(nodes)))
        return [node for node in nodes if self.is_element(node)]

    def insert_after(self, anchor: Tag, html: str) -> list[Tag]:
        fragment = BeautifulSoup(html, self._parser)
        nodes = [node.extract() for node in list(fragment.contents)]
        current = anchor
        for node in nodes:
            current.insert_after(node)
            current = node
        self._record(
            MutationRecord(type="childList", target=anchor.parent, added_nodes=tuple(nodes))
        )
        return [node for node in nodes if self.is_element(node)]

    def remove(self, element: Tag) -> None:
        parent = element.parent
        element.extract()
        self._record(MutationRecord(type="childList", target=parent, removed_nodes=(element,)))

    def set_attribute(self, element: Tag, name: str, value: str) -> None:
        element[name] = value
        self._record(MutationRecord(type="attributes", target=element, attribute_name=name))

    # -- notification ----------------------------------------------------

    def subscribe(self, callback: MutationCallback) -> Subscription:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _record(self, record: MutationRecord) -> None:
        if not self._subscriptions:
            return
        self._pending.append(record)
        if self._flush_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._flush_scheduled = True
        loop.call_soon(self.flush)

    def flush(self) -> None:
        """Deliver queued mutation records to every active subscriber."""
        self._flush_scheduled = False
        records, self._pending = self._pending, []
        if not records:
            return
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(list(records))
            except Exception:
                logger.exception("Mutation subscriber failed")
