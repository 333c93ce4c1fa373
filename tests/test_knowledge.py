import json

import pytest

from app.ai.knowledge import CuratedKnowledge, KnowledgeRouter
from app.errors import ProviderError
from app.services.embeddings import NullEmbeddingProvider

from tests.conftest import FakeEmbeddingProvider, FakeVectorStore, make_match


@pytest.mark.parametrize("query,entry", [
    ("What is Dr. Rameshwar's contact number?", "contact"),
    ("Tell me about Rameshwar's youtube channel", "contact"),
    ("Who is Rameshwar?", "profile"),
    ("How many years of experience does Rameshwar have", "experience"),
    ("Where is Dr Rameshwar's clinic?", "hospital"),
    ("Does Rameshwar run a knee course", "mission"),
    ("Rameshwar", "profile"),
])
def test_curated_routing_priority(query, entry):
    result = CuratedKnowledge().match(query)
    assert result.reference.source == f"curated:{entry}"


def test_curated_match_requires_identity_keyword():
    assert CuratedKnowledge().match("What is the contact number for physiotherapy?") is None


def test_curated_overrides_from_file(tmp_path):
    path = tmp_path / "kb.json"
    path.write_text(json.dumps({"entries": {"contact": {"title": "Clinic desk", "content": "Call 123"}}}))
    result = CuratedKnowledge(str(path)).match("rameshwar phone")
    assert result.context_text == "Clinic desk\nCall 123"


@pytest.mark.asyncio
async def test_curated_contact_lookup_skips_embedding():
    embedder = FakeEmbeddingProvider()
    store = FakeVectorStore([make_match("unused", 0.9)])
    router = KnowledgeRouter(embedder=embedder, vector_store=store, similarity_threshold=0.3, top_k=5)

    result = await router.lookup("What is Dr. Rameshwar's contact number?")

    assert result.has_content
    assert result.reference.source == "curated:contact"
    assert result.matches is None
    assert embedder.calls == []
    assert store.calls == []


@pytest.mark.asyncio
async def test_vector_search_filters_below_threshold():
    embedder = FakeEmbeddingProvider()
    store = FakeVectorStore([
        make_match("Quad sets strengthen the knee.", 0.91, "Quad sets"),
        make_match("Unrelated note.", 0.2),
        make_match("Heel slides restore range of motion.", 0.55, "Heel slides"),
    ])
    router = KnowledgeRouter(embedder=embedder, vector_store=store, similarity_threshold=0.3, top_k=5)

    result = await router.lookup("exercises after knee replacement")

    assert len(embedder.calls) == 1
    assert len(store.calls) == 1
    assert [m.similarity for m in result.matches] == [0.91, 0.55]
    assert result.context_text == "Quad sets strengthen the knee.\nHeel slides restore range of motion."
    assert result.reference.title == "Quad sets"


@pytest.mark.asyncio
async def test_vector_search_keeps_top_k():
    store = FakeVectorStore([make_match(f"doc {i}", 0.4 + i / 100) for i in range(8)])
    router = KnowledgeRouter(
        embedder=FakeEmbeddingProvider(), vector_store=store, similarity_threshold=0.3, top_k=3
    )
    result = await router.lookup("hip exercises")
    assert [m.content for m in result.matches] == ["doc 7", "doc 6", "doc 5"]


@pytest.mark.asyncio
async def test_provider_error_degrades_to_empty_context():
    embedder = FakeEmbeddingProvider(error=ProviderError("embedding timed out"))
    store = FakeVectorStore([make_match("never reached", 0.9)])
    router = KnowledgeRouter(embedder=embedder, vector_store=store, similarity_threshold=0.3, top_k=5)

    result = await router.lookup("shoulder stretches")

    assert not result.has_content
    assert result.reference is None
    assert store.calls == []


@pytest.mark.asyncio
async def test_unconfigured_vector_search_returns_empty():
    router = KnowledgeRouter(embedder=NullEmbeddingProvider(), similarity_threshold=0.3, top_k=5)
    result = await router.lookup("back pain relief")
    assert result.context_text == ""
    assert result.matches is None


@pytest.mark.asyncio
async def test_curated_override_without_title_uses_entry_key(tmp_path):
    path = tmp_path / "kb.json"
    path.write_text(json.dumps({"contact": {"content": "Call +91 1234"}, "profile": {"title": "No content"}}))
    curated = CuratedKnowledge(str(path))
    router = KnowledgeRouter(curated=curated, embedder=FakeEmbeddingProvider(), similarity_threshold=0.3, top_k=5)

    result = await router.lookup("rameshwar contact number")

    assert result.context_text == "Contact\nCall +91 1234"
    assert result.reference.title == "Contact"
    # entries without content fall back to the built-in text
    assert curated.match("Who is Rameshwar?").reference.title != "No content"
