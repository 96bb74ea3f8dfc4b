from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable, Iterable
from typing import Any

from .config import Settings, get_settings
from .dom import MutationRecord, PageDocument, Subscription
from .evidence import EvidenceSource
from .keywords import extract_keywords
from .models import OverlayPayload, PlatformTag, WatcherState
from .platforms import GenericDiscovery, identify_platform, strategy_for
from .presenter import OVERLAY_SELECTOR, OverlayPresenter
from .storage import SettingsStore
from .trust_engine import TrustScorer

logger = logging.getLogger(__name__)

ENABLED_KEY = "enabled"


class _StrongRef:
    __slots__ = ("_obj",)

    def __init__(self, obj: Any) -> None:
        self._obj = obj

    def __call__(self) -> Any:
        return self._obj


class ProcessedSet:
    """Identity-keyed set of elements that never keeps them alive.

    An entry vanishes with its element, so a recycled ``id`` is never
    mistaken for an element that was already processed.
    """

    def __init__(self) -> None:
        self._refs: dict[int, Any] = {}

    def add(self, element: Any) -> bool:
        if element in self:
            return False
        key = id(element)
        try:
            ref = weakref.ref(element, lambda r, key=key: self._forget(key, r))
        except TypeError:
            ref = _StrongRef(element)
        self._refs[key] = ref
        return True

    def _forget(self, key: int, ref: Any) -> None:
        if self._refs.get(key) is ref:
            del self._refs[key]

    def __contains__(self, element: Any) -> bool:
        ref = self._refs.get(id(element))
        return ref is not None and ref() is element

    def __len__(self) -> int:
        return sum(1 for ref in self._refs.values() if ref() is not None)

    def clear(self) -> None:
        self._refs.clear()


class Debouncer:
    """Trailing-edge debounce on the running event loop."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class ResponseWatcher:
    """Watch a page for assistant responses and submit each one exactly once.

    Mutation batches that add elements schedule a debounced pass; a periodic
    poll schedules the same pass independently. Both converge on
    ``process_new_content``, which is idempotent through ``processed``.
    """

    def __init__(
        self,
        page: PageDocument,
        *,
        evidence_source: EvidenceSource,
        presenter: OverlayPresenter,
        settings_store: SettingsStore,
        scorer: TrustScorer | None = None,
        settings: Settings | None = None,
        platform: PlatformTag | None = None,
    ) -> None:
        self.page = page
        self.evidence_source = evidence_source
        self.presenter = presenter
        self.settings_store = settings_store
        self.scorer = scorer or TrustScorer()
        self.settings = settings or get_settings()
        self.platform = platform or identify_platform(page.hostname, page.url)
        self.state = WatcherState.IDLE
        self.enabled = True
        self.processed = ProcessedSet()

        self._strategy = strategy_for(self.platform)
        self._fallback = GenericDiscovery(
            min_chars=self.settings.fallback_min_chars,
            max_elements=self.settings.fallback_max_elements,
        )
        self._debouncer = Debouncer(self.settings.debounce_seconds, self._schedule_pass)
        self._subscription: Subscription | None = None
        self._poll_task: asyncio.Task | None = None
        self._initial_scan: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        if self.state is not WatcherState.IDLE:
            return
        logger.info("Starting watcher on %s (platform=%s)", self.page.url, self.platform.value)
        if not self.platform.supported:
            logger.info("Unsupported platform, watcher stays idle")
            return

        self.enabled = bool(await self.settings_store.get(ENABLED_KEY, True))
        if self.state is not WatcherState.IDLE:
            return
        if not self.enabled:
            logger.info("Watcher is disabled by settings")
            self.state = WatcherState.DISABLED
            return
        self._activate()
        delay = self.settings.initial_scan_delay_seconds
        self._initial_scan = asyncio.get_running_loop().call_later(delay, self._schedule_pass)

    async def set_enabled(self, enabled: bool) -> None:
        if self.state is WatcherState.TORN_DOWN:
            return
        enabled = bool(enabled)
        self.enabled = enabled
        if not self.platform.supported:
            await self.settings_store.set(ENABLED_KEY, enabled)
            return

        if enabled:
            reactivate = self.state is not WatcherState.OBSERVING
            if reactivate:
                # previous overlays are gone, so every present element is new again
                self.processed.clear()
                self._activate()
            await self.settings_store.set(ENABLED_KEY, enabled)
            if reactivate:
                await self.process_new_content()
        else:
            self._deactivate()
            self.state = WatcherState.DISABLED
            self.presenter.clear_all()
            logger.info("Watcher disabled, overlays cleared")
            await self.settings_store.set(ENABLED_KEY, enabled)

    def teardown(self) -> None:
        if self.state is WatcherState.TORN_DOWN:
            return
        self._deactivate()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self.presenter.clear_all()
        self.processed.clear()
        self.state = WatcherState.TORN_DOWN
        logger.info("Watcher torn down")

    def status(self) -> dict[str, Any]:
        return {"platform": self.platform.value, "enabled": self.enabled}

    def debug_info(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "enabled": self.enabled,
            "state": self.state.value,
            "processed_count": len(self.processed),
            "url": self.page.url,
            "hostname": self.page.hostname,
        }

    def _activate(self) -> None:
        if self._subscription is None:
            self._subscription = self.page.subscribe(self._on_mutations)
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        self.state = WatcherState.OBSERVING
        logger.info("Observing DOM changes")

    def _deactivate(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self._initial_scan is not None:
            self._initial_scan.cancel()
            self._initial_scan = None
        self._debouncer.cancel()

    # -- triggers --------------------------------------------------------

    def _on_mutations(self, records: Iterable[MutationRecord]) -> None:
        if self.state is not WatcherState.OBSERVING:
            return
        added = sum(
            1
            for record in records
            if record.type == "childList"
            for node in record.added_nodes
            if self.page.is_element(node)
        )
        if added:
            logger.debug("DOM change detected: %d element(s) added", added)
            self._debouncer.trigger()

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.poll_interval_seconds)
            self._schedule_pass()

    def _schedule_pass(self) -> None:
        if self.state is not WatcherState.OBSERVING:
            return
        task = asyncio.get_running_loop().create_task(self.process_new_content())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # -- processing ------------------------------------------------------

    async def process_new_content(self) -> int:
        """Submit every new qualifying response; returns how many were submitted."""
        if not self.enabled or self.state is not WatcherState.OBSERVING:
            return 0

        submitted: list[tuple[Any, str]] = []
        for element in self.discover():
            if element in self.processed:
                continue
            try:
                text = self.page.response_text(element)
            except Exception:
                logger.exception("Could not read response text")
                self.processed.add(element)
                continue
            if len(text.strip()) < self.settings.min_response_chars:
                continue
            self.processed.add(element)
            submitted.append((element, text))

        if not submitted:
            return 0
        logger.info("Processing %d new response element(s)", len(submitted))
        await asyncio.gather(*(self._process_element(element, text) for element, text in submitted))
        return len(submitted)

    def discover(self) -> list[Any]:
        min_chars = self.settings.min_response_chars
        candidates = [
            element
            for element in self._strategy.discover(self.page, exclude=OVERLAY_SELECTOR)
            if len(self.page.text_content(element).strip()) > min_chars
        ]
        if not candidates:
            logger.debug("No %s selector matched, trying generic discovery", self.platform.value)
            candidates = self._fallback.discover(self.page, exclude=OVERLAY_SELECTOR)
        return candidates

    async def _process_element(self, element: Any, text: str) -> None:
        try:
            keywords = extract_keywords(text, self.settings.max_keywords)
            if not keywords:
                logger.debug("No keywords extracted, skipping element")
                return
            logger.info("Extracted keywords: %s", keywords)
            evidence = await self.evidence_source.resolve(keywords)
            verdict = self.scorer.score(evidence, keywords)
            if self.state is WatcherState.TORN_DOWN:
                return
            self.presenter.render(
                OverlayPayload(element=element, verdict=verdict, evidence=evidence, keywords=keywords)
            )
        except Exception:
            logger.exception("Failed to process response element")
