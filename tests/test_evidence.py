import httpx
import pytest

from hallucination_lens.config import Settings
from hallucination_lens.evidence import (
    EvidenceSource,
    HeuristicEvidenceSource,
    LiveEvidenceSource,
    build_evidence_source,
)
from hallucination_lens.models import TrustLevel
from hallucination_lens.trust_engine import TrustScorer


@pytest.mark.asyncio
async def test_factual_keywords_yield_reliable_items():
    source = HeuristicEvidenceSource()
    items = await source.resolve(["neural", "network", "algorithm"])
    assert 1 <= len(items) <= 2
    assert all(item.is_reliable for item in items)
    assert all(item.is_actionable for item in items)
    assert "neural" in items[0].title
    assert "q=neural+network+algorithm" in items[0].url


@pytest.mark.asyncio
async def test_complex_keywords_without_factual_terms():
    source = HeuristicEvidenceSource()
    flags = source.classify(["zeppelin", "vinyl", "quartet"])
    assert flags == {"factual": False, "subjective": False, "complex": True}
    items = await source.resolve(["zeppelin", "vinyl", "quartet"])
    assert [item.is_reliable for item in items] == [True, True]


@pytest.mark.asyncio
async def test_subjective_keywords_yield_single_unreliable_item():
    items = await HeuristicEvidenceSource().resolve(["좋아하는", "추천"])
    assert len(items) == 1
    assert items[0].is_reliable is False
    assert items[0].url == "#"
    assert not items[0].is_actionable


@pytest.mark.asyncio
async def test_unclassified_keywords_yield_nothing():
    assert await HeuristicEvidenceSource().resolve(["zebra", "pizza"]) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("keywords", [[], ["a", "b"], ["a"]])
async def test_guard_returns_empty_for_trivial_keywords(keywords):
    assert await HeuristicEvidenceSource().resolve(keywords) == []


def test_factory_follows_evidence_mode():
    assert isinstance(build_evidence_source(Settings(evidence_mode="heuristic")), HeuristicEvidenceSource)
    live = build_evidence_source(Settings(evidence_mode="live"))
    assert isinstance(live, LiveEvidenceSource)
    assert isinstance(live, EvidenceSource)


# -- live lookup -----------------------------------------------------------

DDG_PAYLOAD = {
    "Heading": "Neural network",
    "Abstract": "A neural network is a computational model inspired by the brain.",
    "AbstractURL": "https://en.wikipedia.org/wiki/Neural_network",
    "RelatedTopics": [
        {"Text": "Deep learning - A family of methods", "FirstURL": "https://duckduckgo.com/Deep_learning"},
        {"Name": "Category group without text"},
    ],
    "Answer": "",
}


def make_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_live_maps_duckduckgo_fields():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=DDG_PAYLOAD)

    async with make_client(handler) as client:
        items = await LiveEvidenceSource(Settings(), client=client).resolve(
            ["neural", "network", "algorithm", "extra"]
        )

    assert seen[0].url.params["q"] == "neural network algorithm"
    assert seen[0].url.params["format"] == "json"
    assert [item.title for item in items] == ["Neural network", "Deep learning"]
    assert all(item.is_reliable and item.source == "DuckDuckGo" for item in items)


@pytest.mark.asyncio
async def test_live_falls_back_to_wikipedia():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.duckduckgo.com":
            return httpx.Response(200, json={"Abstract": "", "RelatedTopics": []})
        if "/page/search/" in request.url.path:
            return httpx.Response(200, json={"pages": [{"key": "Neural_network"}, {"key": "Perceptron"}]})
        key = request.url.path.rsplit("/", 1)[-1]
        if key == "Perceptron":
            return httpx.Response(404)
        return httpx.Response(
            200,
            json={
                "title": "Neural network",
                "extract": "Computational model.",
                "content_urls": {"desktop": {"page": "https://en.wikipedia.org/wiki/Neural_network"}},
            },
        )

    async with make_client(handler) as client:
        items = await LiveEvidenceSource(Settings(), client=client).resolve(["neural", "network"])

    assert len(items) == 1
    assert items[0].source == "Wikipedia"
    assert items[0].url == "https://en.wikipedia.org/wiki/Neural_network"


@pytest.mark.asyncio
async def test_live_returns_sentinel_when_nothing_found():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.duckduckgo.com":
            return httpx.Response(500)
        return httpx.Response(200, json={"pages": []})

    async with make_client(handler) as client:
        items = await LiveEvidenceSource(Settings(), client=client).resolve(["obscure", "term"])

    assert len(items) == 1
    assert items[0].url == "#"
    assert items[0].is_reliable is True
    assert not items[0].is_actionable


@pytest.mark.asyncio
async def test_live_nothing_found_is_not_scored_as_subjective():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.duckduckgo.com":
            return httpx.Response(200, json={"Abstract": "", "RelatedTopics": []})
        return httpx.Response(200, json={"pages": []})

    keywords = ["neural", "network", "algorithm"]
    async with make_client(handler) as client:
        items = await LiveEvidenceSource(Settings(), client=client).resolve(keywords)

    verdict = TrustScorer().score(items, keywords)
    assert [(item.url, item.is_reliable) for item in items] == [("#", True)]
    assert verdict.score is not TrustLevel.LOW
    assert "subjective" not in verdict.reason
    assert "Found 0" not in verdict.reason


@pytest.mark.asyncio
async def test_live_never_raises_on_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async with make_client(handler) as client:
        items = await LiveEvidenceSource(Settings(), client=client).resolve(["neural"])

    assert [item.url for item in items] == ["#"]


@pytest.mark.asyncio
async def test_live_handles_invalid_json():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    async with make_client(handler) as client:
        items = await LiveEvidenceSource(Settings(), client=client).resolve(["neural"])

    assert items[0].url == "#"
    assert await LiveEvidenceSource(Settings(), client=client).resolve([]) == []
