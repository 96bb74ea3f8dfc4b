import sys
from pathlib import Path
import os

import pytest


# Ensure project src is on path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (ROOT, SRC):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

# Keep tests offline and in-memory regardless of the developer's .env
os.environ.setdefault("LENS_EVIDENCE_MODE", "heuristic")
os.environ.setdefault("LENS_SETTINGS_BACKEND", "memory")

from hallucination_lens.config import Settings  # noqa: E402


CHATGPT_URL = "https://chatgpt.com/c/abc123"

NEURAL_TEXT = (
    "Neural network algorithm: a neural network is an algorithm. "
    "The network and the neural algorithm."
)
SUBJECTIVE_TEXT = "좋아하는 추천 " * 10


def assistant_turn(text: str, turn: int = 3) -> str:
    return (
        f'<div class="group conversation-turn" data-testid="conversation-turn-{turn}">'
        f'<div data-message-author-role="assistant"><p>{text}</p></div>'
        "</div>"
    )


def chat_page(*responses: str) -> str:
    turns = "".join(assistant_turn(text, turn=index + 3) for index, text in enumerate(responses))
    return (
        "<html><body><main>"
        '<div class="group conversation-turn" data-testid="conversation-turn-2">'
        '<div data-message-author-role="user">Explain how neural networks learn from data, please.</div>'
        "</div>"
        f"{turns}"
        "</main></body></html>"
    )


class RecordingPresenter:
    """Presenter double that keeps payloads instead of touching the page"""

    def __init__(self):
        self.rendered = []
        self.history = []
        self.clear_calls = 0

    def render(self, payload):
        self.rendered.append(payload)
        self.history.append(payload)

    def clear_all(self):
        self.clear_calls += 1
        self.rendered = []


@pytest.fixture
def fast_settings():
    """Short debounce; poll and initial scan pushed out of the way"""
    return Settings(
        debounce_seconds=0.02,
        poll_interval_seconds=60,
        initial_scan_delay_seconds=60,
    )


@pytest.fixture
def presenter():
    return RecordingPresenter()
