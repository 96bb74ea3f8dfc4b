import pytest

from hallucination_lens.keywords import extract_keywords, normalize_text, tokenize


def test_frequency_order_with_first_seen_tiebreak():
    assert extract_keywords("AI AI AI model model data") == ["ai", "model", "data"]
    assert extract_keywords("beta alpha gamma alpha beta") == ["beta", "alpha", "gamma"]


def test_repeated_calls_are_deterministic():
    text = "Quantum computing uses qubits; quantum gates manipulate qubits and quantum states."
    first = extract_keywords(text)
    assert first[:2] == ["quantum", "qubits"]
    for _ in range(5):
        assert extract_keywords(text) == first


def test_stop_words_and_short_tokens_are_dropped():
    assert extract_keywords("is a it to of 그 이") == []
    assert extract_keywords("그리고 또한 하지만 the and") == []


def test_numeric_tokens_are_dropped_but_mixed_tokens_kept():
    assert extract_keywords("2024 2024 2024 gpt4 gpt4 release") == ["gpt4", "release"]


def test_at_most_five_keywords():
    keywords = extract_keywords("one two three four five six seven eight")
    assert keywords == ["one", "two", "three", "four", "five"]
    assert extract_keywords("one two three", limit=2) == ["one", "two"]


def test_punctuation_is_stripped_and_case_folded():
    assert normalize_text("  Hello,   WORLD!!  (test) ") == "hello world test"
    assert tokenize("Neural-network's") == ["neural", "network"]


def test_korean_tokens_survive_normalization():
    assert extract_keywords("인공지능 모델은 인공지능 연구의 핵심입니다.") == ["인공지능", "모델은", "연구의", "핵심입니다"]


@pytest.mark.parametrize("value", [None, "", "   ", 42, ["ai", "model"], "!!! ??? ..."])
def test_total_over_non_text_input(value):
    assert extract_keywords(value) == []
