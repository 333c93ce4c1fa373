import asyncio
from typing import List, Optional

import pytest

from app.ai.knowledge import CuratedKnowledge, KnowledgeRouter
from app.ai.orchestrator import ConversationOrchestrator
from app.config import Settings
from app.models.knowledge import KnowledgeMatch, MatchMetadata
from app.services.embeddings import EmbeddingProvider
from app.services.llm import CompletionProvider
from app.services.rate_limiter import RateLimiter
from app.services.response_cache import ResponseCache
from app.services.transcripts import TranscriptStore
from app.services.vector_store import VectorStore
from app.services.voice_sessions import InMemoryVoiceSessionStore, VoiceSessionService

DEFAULT_REPLY = "Gentle quad sets and ankle pumps are a good start. How many weeks ago was your surgery?"


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCompletionProvider(CompletionProvider):
    def __init__(self, reply: str = DEFAULT_REPLY, error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, system_prompt, messages, max_tokens, temperature) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.error:
            raise self.error
        return self.reply


class EchoingCompletionProvider(FakeCompletionProvider):
    """Suspends once per call so concurrent requests interleave; echoes the last user message"""

    async def complete(self, system_prompt, messages, max_tokens, temperature) -> str:
        await super().complete(system_prompt, messages, max_tokens, temperature)
        await asyncio.sleep(0)
        return f"Answer to: {messages[-1]['content']}."


class FakeEmbeddingProvider(EmbeddingProvider):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        return [0.1, 0.2, 0.3]


class FakeVectorStore(VectorStore):
    def __init__(self, matches: Optional[List[KnowledgeMatch]] = None):
        self.matches = matches or []
        self.calls = []

    async def search(self, query_vector, similarity_threshold, top_k) -> List[KnowledgeMatch]:
        self.calls.append((query_vector, similarity_threshold, top_k))
        return list(self.matches)


def make_match(content: str, similarity: float, title: str = None) -> KnowledgeMatch:
    return KnowledgeMatch(
        content=content,
        similarity=similarity,
        metadata=MatchMetadata(title=title or content, url="https://kb.example/" + content, source="kb"),
    )


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        GROQ_API_KEY="",
        RATE_LIMIT_ENABLED=True,
        RATE_LIMIT_REQUESTS=15,
        RATE_LIMIT_PERIOD=60,
        CACHE_TTL_SECONDS=300,
        LLM_MAX_TOKENS=300,
        LLM_VOICE_MAX_TOKENS=200,
        LLM_TEMPERATURE=0.7,
        VOICE_SESSION_BACKEND="memory",
        LOG_FILE=None,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def llm():
    return FakeCompletionProvider()


@pytest.fixture
def embedder():
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_store():
    return FakeVectorStore([make_match("Ice the knee for 15 minutes after exercise.", 0.82, "Icing")])


@pytest.fixture
def router(embedder, vector_store):
    return KnowledgeRouter(
        curated=CuratedKnowledge(),
        embedder=embedder,
        vector_store=vector_store,
        similarity_threshold=0.3,
        top_k=5,
    )


@pytest.fixture
def voice_store():
    return InMemoryVoiceSessionStore()


@pytest.fixture
def voice_service(voice_store):
    return VoiceSessionService(voice_store, ttl_seconds=3600)


@pytest.fixture
def orchestrator(llm, router, voice_service, clock, test_settings):
    return ConversationOrchestrator(
        llm=llm,
        router=router,
        transcripts=TranscriptStore(max_turns=10, context_turns=5),
        voice_sessions=voice_service,
        rate_limiter=RateLimiter(max_requests=15, window_seconds=60, clock=clock),
        cache=ResponseCache(ttl_seconds=300, max_entries=100, timer=clock),
        config=test_settings,
    )
