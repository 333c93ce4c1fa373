"""
Conversation Orchestrator
Runs every inbound message through safety, throttling, caching, knowledge lookup and the LLM
"""
from typing import Optional, Tuple

from app.ai.detector import detect_emotion, detect_language, is_greeting
from app.ai.knowledge import CuratedKnowledge, KnowledgeRouter
from app.ai.prompts import build_text_prompt, build_voice_prompt
from app.ai.responses import complete_response, fallback_for, greeting_for, rate_limited_for
from app.ai.safety import check_harmful
from app.config import Settings, settings as default_settings
from app.errors import StorageError, ValidationError
from app.models.conversation import ChatResult, ConversationTurn, Emotion, Language, MessageSource, ResultSource, Role
from app.models.knowledge import KnowledgeResult
from app.models.voice_session import VoiceSession
from app.services.embeddings import build_embedding_provider
from app.services.llm import CompletionProvider, build_completion_provider
from app.services.rate_limiter import RateLimiter
from app.services.response_cache import ResponseCache
from app.services.transcripts import TranscriptStore
from app.services.vector_store import build_vector_store
from app.services.voice_sessions import VoiceSessionService, build_voice_session_store, extract_context
from app.utils.locks import KeyedLock
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class ConversationOrchestrator:
    """
    Turns one user message into a ChatResult.

    Order of checks: safety refusal, greeting, rate limit, cache. Anything that
    fails between knowledge lookup and post-processing becomes a localized
    apology instead of an exception.
    """

    def __init__(
        self,
        llm: CompletionProvider,
        router: KnowledgeRouter,
        transcripts: TranscriptStore,
        voice_sessions: VoiceSessionService,
        rate_limiter: RateLimiter,
        cache: ResponseCache,
        config: Optional[Settings] = None,
    ):
        self.llm = llm
        self.router = router
        self.transcripts = transcripts
        self.voice = voice_sessions
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.config = config or default_settings
        self._locks = KeyedLock()

    def greeting(self, language: Language = Language.ENGLISH) -> str:
        return greeting_for(language)

    async def handle_message(
        self,
        user_id: Optional[str],
        message: str,
        source: str = "text",
        session_id: Optional[str] = None,
    ) -> ChatResult:
        message = (message or "").strip()
        channel = self._validate(user_id, message, source, session_id)
        conversation_id = session_id or user_id

        language = detect_language(message)
        emotion = detect_emotion(message)

        refusal = check_harmful(message, language)
        if refusal:
            logger.info("Refused harmful request from %s", conversation_id)
            return self._result(refusal, language, emotion, conversation_id, ResultSource.SAFETY)

        if is_greeting(message):
            logger.debug("Greeting short-circuit for %s", conversation_id)
            return self._result(self.greeting(language), language, emotion, conversation_id, ResultSource.GREETING)

        if self.config.RATE_LIMIT_ENABLED and not self.rate_limiter.check_and_record(user_id or session_id):
            logger.info("Rate limit reached for %s", user_id or session_id)
            return self._result(
                rate_limited_for(language), language, emotion, conversation_id, ResultSource.RATE_LIMIT
            )

        if channel == MessageSource.VOICE:
            return await self._handle_voice(user_id, message, session_id, language, emotion)

        cached = self.cache.get(user_id, message)
        if cached:
            logger.debug("Cache hit for %s", user_id)
            return cached.model_copy(update={"source": ResultSource.CACHE})

        return await self._handle_text(user_id, message, language, emotion)

    def _validate(
        self,
        user_id: Optional[str],
        message: str,
        source: str,
        session_id: Optional[str],
    ) -> MessageSource:
        if not message:
            raise ValidationError("Message text is required", field="query")
        try:
            channel = MessageSource(source or MessageSource.TEXT.value)
        except ValueError:
            raise ValidationError(f"Unknown message source '{source}'", field="source")
        if channel == MessageSource.VOICE and not (session_id or user_id):
            raise ValidationError("Voice messages need a session id or a user id", field="sessionId")
        if channel == MessageSource.TEXT and not user_id:
            raise ValidationError("User id is required", field="userId")
        return channel

    async def _handle_text(self, user_id: str, message: str, language: Language, emotion: Emotion) -> ChatResult:
        async with self._locks.hold(f"user:{user_id}"):
            memory = self.transcripts.get_recent_context(user_id)
            try:
                reply, knowledge = await self._generate(
                    message, language, emotion, max_tokens=self.config.LLM_MAX_TOKENS, memory=memory
                )
            except Exception:
                logger.warning("Chat answer failed for %s; sending fallback", user_id, exc_info=True)
                return self._result(fallback_for(language), language, emotion, user_id, ResultSource.FALLBACK)

            self.transcripts.append_turn(user_id, Role.USER, message, language, emotion)
            self.transcripts.append_turn(user_id, Role.ASSISTANT, reply, language, emotion)

        result = self._result(reply, language, emotion, user_id, ResultSource.LLM, knowledge)
        self.cache.put(user_id, message, result)
        return result

    async def _handle_voice(
        self,
        user_id: Optional[str],
        message: str,
        session_id: Optional[str],
        language: Language,
        emotion: Emotion,
    ) -> ChatResult:
        conversation_id = user_id or session_id
        session_id = await self._resolve_session_id(user_id, session_id)
        if not session_id:
            return await self._answer_without_memory(conversation_id, message, language, emotion)

        async with self.voice.lock(session_id):
            try:
                session = await self.voice.get_session(session_id)
            except StorageError:
                logger.error("Could not load voice session %s", session_id, exc_info=True)
                session = None
            if session is None:
                return await self._answer_without_memory(conversation_id, message, language, emotion)

            try:
                reply, knowledge = await self._generate(
                    message, language, emotion, max_tokens=self.config.LLM_VOICE_MAX_TOKENS, session=session
                )
            except Exception:
                logger.warning("Voice answer failed for session %s; sending fallback", session_id, exc_info=True)
                return self._session_result(
                    fallback_for(language), language, emotion, session, ResultSource.FALLBACK
                )

            self._remember_voice_turn(session, message, reply, language, emotion)
            try:
                await self.voice.save_session(session)
            except StorageError:
                logger.error("Could not save voice session %s", session_id, exc_info=True)

        return self._session_result(reply, language, emotion, session, ResultSource.LLM, knowledge)

    async def _resolve_session_id(self, user_id: Optional[str], session_id: Optional[str]) -> Optional[str]:
        """Use the given session when it still exists, otherwise the user's active call"""
        try:
            if session_id and await self.voice.get_session(session_id):
                return session_id
            if user_id:
                session = await self.voice.ensure_active_session(user_id)
                return session.session_id
        except StorageError:
            logger.error("Voice session lookup failed; answering without call memory", exc_info=True)
            return None
        logger.warning("Voice session %s not found and no user id to start a new one", session_id)
        return None

    async def _answer_without_memory(
        self,
        conversation_id: str,
        message: str,
        language: Language,
        emotion: Emotion,
    ) -> ChatResult:
        try:
            reply, knowledge = await self._generate(
                message, language, emotion, max_tokens=self.config.LLM_VOICE_MAX_TOKENS
            )
        except Exception:
            logger.warning("Memory-less voice answer failed; sending fallback", exc_info=True)
            return self._result(fallback_for(language), language, emotion, conversation_id, ResultSource.FALLBACK)
        return self._result(reply, language, emotion, conversation_id, ResultSource.LLM, knowledge)

    async def _generate(
        self,
        message: str,
        language: Language,
        emotion: Emotion,
        max_tokens: int,
        memory: str = "",
        session: Optional[VoiceSession] = None,
    ) -> Tuple[str, KnowledgeResult]:
        knowledge = await self.router.lookup(message)
        if session is not None:
            system_prompt = build_voice_prompt(language, emotion, session, knowledge.context_text)
        else:
            system_prompt = build_text_prompt(language, emotion, memory, knowledge.context_text)

        reply = await self.llm.complete(
            system_prompt,
            [{"role": Role.USER.value, "content": message}],
            max_tokens=max_tokens,
            temperature=self.config.LLM_TEMPERATURE,
        )
        return complete_response(reply, language), knowledge

    @staticmethod
    def _remember_voice_turn(
        session: VoiceSession,
        message: str,
        reply: str,
        language: Language,
        emotion: Emotion,
    ) -> None:
        session.add_turn(ConversationTurn(role=Role.USER, content=message, language=language, emotion=emotion))
        session.add_turn(ConversationTurn(role=Role.ASSISTANT, content=reply, language=language, emotion=emotion))
        session.apply_context_update(extract_context(message), language)

    @staticmethod
    def _result(
        response: str,
        language: Language,
        emotion: Emotion,
        conversation_id: str,
        source: ResultSource,
        knowledge: Optional[KnowledgeResult] = None,
    ) -> ChatResult:
        return ChatResult(
            response=response,
            detected_language=language,
            detected_emotion=emotion,
            conversation_id=conversation_id,
            source=source,
            has_kb_content=bool(knowledge and knowledge.has_content),
            reference=knowledge.reference if knowledge else None,
        )

    def _session_result(
        self,
        response: str,
        language: Language,
        emotion: Emotion,
        session: VoiceSession,
        source: ResultSource,
        knowledge: Optional[KnowledgeResult] = None,
    ) -> ChatResult:
        result = self._result(response, language, emotion, session.session_id, source, knowledge)
        result.session_id = session.session_id
        result.session_context = session.context_summary()
        result.session_active = session.is_active
        return result

    async def close(self) -> None:
        await self.router.vector_store.close()


def build_orchestrator(config: Optional[Settings] = None) -> ConversationOrchestrator:
    """Wire the orchestrator from settings; missing credentials fall back to null collaborators"""
    config = config or default_settings
    router = KnowledgeRouter(
        curated=CuratedKnowledge(config.CURATED_KB_PATH),
        embedder=build_embedding_provider(config),
        vector_store=build_vector_store(config),
        similarity_threshold=config.KB_SIMILARITY_THRESHOLD,
        top_k=config.KB_TOP_K,
    )
    return ConversationOrchestrator(
        llm=build_completion_provider(config),
        router=router,
        transcripts=TranscriptStore(config.TRANSCRIPT_MAX_TURNS, config.TRANSCRIPT_CONTEXT_TURNS),
        voice_sessions=VoiceSessionService(build_voice_session_store(config), config.VOICE_SESSION_TTL_SECONDS),
        rate_limiter=RateLimiter(config.RATE_LIMIT_REQUESTS, config.RATE_LIMIT_PERIOD),
        cache=ResponseCache(config.CACHE_TTL_SECONDS, config.CACHE_MAX_ENTRIES),
        config=config,
    )
