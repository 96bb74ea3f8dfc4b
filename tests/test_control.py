import pytest
import pytest_asyncio

from conftest import CHATGPT_URL, NEURAL_TEXT, chat_page
from hallucination_lens.control import ControlSurface
from hallucination_lens.dom import SoupPage
from hallucination_lens.evidence import HeuristicEvidenceSource
from hallucination_lens.models import WatcherState
from hallucination_lens.storage import MemorySettingsStore
from hallucination_lens.watcher import ResponseWatcher


@pytest_asyncio.fixture
async def surface(presenter, fast_settings):
    page = SoupPage(chat_page(NEURAL_TEXT), CHATGPT_URL)
    watcher = ResponseWatcher(
        page,
        evidence_source=HeuristicEvidenceSource(fast_settings),
        presenter=presenter,
        settings_store=MemorySettingsStore(),
        settings=fast_settings,
    )
    await watcher.start()
    yield ControlSurface(watcher)
    watcher.teardown()


@pytest.mark.asyncio
async def test_toggle_acknowledges_then_applies(surface, presenter):
    assert surface.handle({"action": "toggle", "enabled": False}) == {"success": True}
    await surface.pending
    assert surface.watcher.state is WatcherState.DISABLED
    assert await surface.watcher.settings_store.get("enabled") is False
    assert presenter.clear_calls == 1

    assert surface.handle({"action": "toggle", "enabled": True}) == {"success": True}
    await surface.pending
    assert surface.watcher.state is WatcherState.OBSERVING
    assert len(presenter.history) == 1


@pytest.mark.asyncio
async def test_status_and_debug_info(surface):
    assert surface.handle({"action": "getStatus"}) == {"platform": "chatgpt", "enabled": True}

    await surface.watcher.process_new_content()
    info = surface.handle({"action": "getDebugInfo"})
    assert info["state"] == "observing"
    assert info["processed_count"] == 1
    assert info["hostname"] == "chatgpt.com"
    assert info["url"] == CHATGPT_URL


@pytest.mark.asyncio
@pytest.mark.parametrize("message", [
    {"action": "reboot"},
    {},
    {"action": "toggle"},
    {"action": "toggle", "enabled": "yes"},
])
async def test_rejected_messages_change_nothing(surface, message):
    response = surface.handle(message)
    assert response["success"] is False
    assert "error" in response
    assert surface.pending is None
    assert surface.watcher.enabled is True
