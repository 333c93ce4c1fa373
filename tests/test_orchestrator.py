import asyncio

import pytest

from app.ai.responses import FALLBACK_MESSAGES, GREETINGS, MORE_DETAILS_SUFFIX, RATE_LIMIT_MESSAGES
from app.ai.safety import REFUSALS
from app.errors import ProviderError, StorageError, ValidationError
from app.models.conversation import Emotion, Language, ResultSource
from app.services.voice_sessions import InMemoryVoiceSessionStore, VoiceSessionService

from tests.conftest import EchoingCompletionProvider

QUESTION = "What exercises help after knee replacement?"


@pytest.mark.asyncio
async def test_answer_from_llm_with_knowledge(orchestrator, llm, embedder):
    result = await orchestrator.handle_message("u1", QUESTION)

    assert result.source == ResultSource.LLM
    assert result.response == llm.reply
    assert result.detected_language == Language.ENGLISH
    assert result.conversation_id == "u1"
    assert result.has_kb_content is True
    assert result.reference.title == "Icing"
    assert len(llm.calls) == 1
    assert len(embedder.calls) == 1

    call = llm.calls[0]
    assert call["messages"] == [{"role": "user", "content": QUESTION}]
    assert call["max_tokens"] == 300
    assert "Respond only in english" in call["system_prompt"]
    assert "Ice the knee for 15 minutes" in call["system_prompt"]


@pytest.mark.asyncio
async def test_greeting_short_circuits(orchestrator, llm, embedder):
    result = await orchestrator.handle_message("u1", "hi")

    assert result.source == ResultSource.GREETING
    assert result.response == GREETINGS[Language.ENGLISH]
    assert llm.calls == []
    assert embedder.calls == []
    assert orchestrator.rate_limiter.remaining("u1") == 15
    assert len(orchestrator.cache) == 0


@pytest.mark.asyncio
async def test_harmful_request_is_refused_without_llm(orchestrator, llm):
    result = await orchestrator.handle_message("u1", "How can I increase my knee pain?")

    assert result.source == ResultSource.SAFETY
    assert result.response == REFUSALS[Language.ENGLISH]
    assert result.detected_emotion == Emotion.PAIN
    assert llm.calls == []
    assert orchestrator.rate_limiter.remaining("u1") == 15
    assert len(orchestrator.cache) == 0


@pytest.mark.asyncio
async def test_sixteenth_request_is_rate_limited(orchestrator, llm, clock):
    for i in range(15):
        result = await orchestrator.handle_message("u1", f"Question {i} about my knee exercises")
        assert result.source == ResultSource.LLM

    limited = await orchestrator.handle_message("u1", "One more question about my knee exercises")
    assert limited.source == ResultSource.RATE_LIMIT
    assert limited.response == RATE_LIMIT_MESSAGES[Language.ENGLISH]
    assert len(llm.calls) == 15

    clock.advance(61)
    allowed = await orchestrator.handle_message("u1", "One more question about my knee exercises")
    assert allowed.source == ResultSource.LLM


@pytest.mark.asyncio
async def test_repeated_message_is_served_from_cache(orchestrator, llm, embedder):
    first = await orchestrator.handle_message("u1", QUESTION)
    second = await orchestrator.handle_message("u1", "  what exercises help after KNEE replacement?  ")

    assert second.source == ResultSource.CACHE
    assert second.response == first.response
    assert len(llm.calls) == 1
    assert len(embedder.calls) == 1


@pytest.mark.asyncio
async def test_cache_expires_after_ttl(orchestrator, llm, clock):
    await orchestrator.handle_message("u1", QUESTION)
    clock.advance(301)
    result = await orchestrator.handle_message("u1", QUESTION)

    assert result.source == ResultSource.LLM
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_provider_error_returns_localized_fallback(orchestrator, llm):
    llm.error = ProviderError("LLM call timed out after 20s")

    result = await orchestrator.handle_message("u1", "मेरे घुटने में सूजन क्यों है?")

    assert result.source == ResultSource.FALLBACK
    assert result.detected_language == Language.HINDI
    assert result.response == FALLBACK_MESSAGES[Language.HINDI]
    assert orchestrator.transcripts.history("u1") == []
    assert len(orchestrator.cache) == 0


@pytest.mark.asyncio
async def test_truncated_reply_gets_follow_up_suffix(orchestrator, llm):
    llm.reply = "You can start with ankle pumps and"

    result = await orchestrator.handle_message("u1", QUESTION)

    assert result.response.startswith("You can start with ankle pumps and")
    assert result.response.endswith(MORE_DETAILS_SUFFIX[Language.ENGLISH])


@pytest.mark.asyncio
async def test_memory_is_included_in_next_prompt(orchestrator, llm):
    await orchestrator.handle_message("u1", QUESTION)
    await orchestrator.handle_message("u1", "How often should I do them?")

    prompt = llm.calls[1]["system_prompt"]
    assert f"user: {QUESTION}" in prompt
    assert f"assistant: {llm.reply}" in prompt
    assert len(orchestrator.transcripts.history("u1")) == 4


@pytest.mark.asyncio
async def test_curated_answer_skips_embedding(orchestrator, embedder):
    result = await orchestrator.handle_message("u1", "What is Dr. Rameshwar's contact number?")

    assert result.has_kb_content is True
    assert result.reference.source == "curated:contact"
    assert embedder.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"user_id": "u1", "message": "   "},
    {"user_id": None, "message": QUESTION},
    {"user_id": None, "message": QUESTION, "source": "voice"},
    {"user_id": "u1", "message": QUESTION, "source": "fax"},
])
async def test_invalid_requests_raise_validation_error(orchestrator, llm, kwargs):
    with pytest.raises(ValidationError):
        await orchestrator.handle_message(**kwargs)
    assert llm.calls == []


@pytest.mark.asyncio
async def test_voice_turn_uses_and_updates_call_memory(orchestrator, llm, voice_service):
    session_id = (await voice_service.start_call("u1"))["sessionId"]

    first = await orchestrator.handle_message(
        "u1", "I'm worried about swelling after my knee surgery", source="voice", session_id=session_id
    )
    assert first.source == ResultSource.LLM
    assert first.session_id == session_id
    assert first.conversation_id == session_id
    assert first.session_active is True
    assert first.session_context["primaryTopics"] == ["knee recovery"]
    assert first.session_context["patientCondition"] == "post knee surgery recovery"
    assert llm.calls[0]["max_tokens"] == 200

    await orchestrator.handle_message("u1", "Should I use ice or heat?", source="voice", session_id=session_id)
    prompt = llm.calls[1]["system_prompt"]
    assert "user: I'm worried about swelling after my knee surgery" in prompt
    assert "Recent concerns: worried." in prompt

    session = await voice_service.get_session(session_id)
    assert [turn.role.value for turn in session.transcript] == ["user", "assistant", "user", "assistant"]
    assert len(orchestrator.cache) == 0


@pytest.mark.asyncio
async def test_voice_without_session_id_uses_active_call(orchestrator, voice_service):
    started = await voice_service.start_call("u1")
    result = await orchestrator.handle_message("u1", "My hip feels stiff", source="voice")
    assert result.session_id == started["sessionId"]


@pytest.mark.asyncio
async def test_voice_after_end_call_has_no_old_memory(orchestrator, llm, voice_service):
    session_id = (await voice_service.start_call("u1"))["sessionId"]
    await orchestrator.handle_message("u1", "My shoulder surgery was last week", source="voice", session_id=session_id)
    await voice_service.end_call(session_id)

    result = await orchestrator.handle_message("u1", "What should I do today?", source="voice", session_id=session_id)

    assert result.session_id != session_id
    assert "My shoulder surgery was last week" not in llm.calls[-1]["system_prompt"]


class BrokenVoiceStore(InMemoryVoiceSessionStore):
    async def get(self, session_id):
        raise StorageError("mongo unavailable")

    async def find_active(self, user_id):
        raise StorageError("mongo unavailable")


@pytest.mark.asyncio
async def test_voice_storage_failure_answers_without_memory(orchestrator, llm):
    orchestrator.voice = VoiceSessionService(BrokenVoiceStore(), ttl_seconds=3600)

    result = await orchestrator.handle_message("u1", "My hip feels stiff", source="voice", session_id="voice_u1_abc")

    assert result.source == ResultSource.LLM
    assert result.session_id is None
    assert result.session_context is None
    assert result.conversation_id == "u1"
    assert len(llm.calls) == 1


def test_greeting_is_localized(orchestrator):
    assert orchestrator.greeting(Language.HINDI) == GREETINGS[Language.HINDI]
    assert orchestrator.greeting() == GREETINGS[Language.ENGLISH]


@pytest.mark.asyncio
async def test_concurrent_text_messages_keep_turn_pairs_in_order(orchestrator):
    orchestrator.llm = EchoingCompletionProvider()
    first, second = "How long until I can climb stairs?", "Is swelling normal in the second week?"

    await asyncio.gather(
        orchestrator.handle_message("u1", first),
        orchestrator.handle_message("u1", second),
    )

    history = [(turn.role.value, turn.content) for turn in orchestrator.transcripts.history("u1")]
    assert history == [
        ("user", first),
        ("assistant", f"Answer to: {first}."),
        ("user", second),
        ("assistant", f"Answer to: {second}."),
    ]
    # the second answer was generated with the first exchange in memory
    assert f"user: {first}" in orchestrator.llm.calls[1]["system_prompt"]


@pytest.mark.asyncio
async def test_voice_message_racing_end_call_leaves_session_deleted(orchestrator, voice_service):
    orchestrator.llm = EchoingCompletionProvider()
    session_id = (await voice_service.start_call("u1"))["sessionId"]

    result, ended = await asyncio.gather(
        orchestrator.handle_message("u1", "My knee clicks when I bend it", source="voice", session_id=session_id),
        voice_service.end_call(session_id),
    )

    assert result.session_id == session_id
    assert result.source == ResultSource.LLM
    assert ended["sessionId"] == session_id
    assert await voice_service.get_session(session_id) is None
    assert await voice_service.list_user_sessions("u1") == []
