"""
Voice Session Service
Call-scoped memory for voice conversations.
Every call gets one session; ending the call deletes the session and its transcript.
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from beanie.operators import Set
from pymongo.errors import PyMongoError

from app.config import Settings, settings
from app.errors import StorageError
from app.models.conversation import ConversationTurn, Emotion, Language, Role
from app.models.voice_session import ContextUpdate, VoiceSession, VoiceSessionDocument
from app.utils.locks import KeyedLock
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

# First matching topic wins
TOPIC_PATTERNS = {
    "knee recovery": ["knee", "knee pain", "knee surgery", "knee replacement"],
    "back pain relief": ["back pain", "back injury", "spine", "lower back"],
    "shoulder rehabilitation": ["shoulder", "shoulder pain", "shoulder surgery"],
    "hip replacement care": ["hip", "hip replacement", "hip surgery", "hip pain"],
    "post-operative care": ["post-op", "after surgery", "post surgery", "recovery"],
    "exercise guidance": ["exercise", "workout", "physical therapy", "stretching"],
    "pain management": ["pain relief", "manage pain", "reduce pain", "medication"],
    "wound care": ["wound", "incision", "stitches", "healing", "scar"],
}
CONCERN_KEYWORDS = ["worried", "concerned", "afraid", "scared", "anxious", "problem", "issue"]
SYMPTOM_KEYWORDS = ["pain", "swelling", "stiffness", "numbness", "tingling", "weakness", "ache"]
CONDITION_PATTERNS = {
    "post knee surgery recovery": ["knee surgery", "knee replacement"],
    "post hip surgery recovery": ["hip surgery", "hip replacement"],
    "post shoulder surgery recovery": ["shoulder surgery"],
    "post-operative recovery": ["after surgery", "post surgery", "post-op"],
}


def extract_context(message: str) -> ContextUpdate:
    """Keyword matchers over the latest user message"""
    lowered = (message or "").lower()
    update = ContextUpdate()

    for topic, keywords in TOPIC_PATTERNS.items():
        if any(keyword in lowered for keyword in keywords):
            update.topic = topic
            break

    for condition, keywords in CONDITION_PATTERNS.items():
        if any(keyword in lowered for keyword in keywords):
            update.condition = condition
            break

    update.concerns = [word for word in CONCERN_KEYWORDS if word in lowered]
    update.symptoms = [word for word in SYMPTOM_KEYWORDS if word in lowered]
    return update


class VoiceSessionStore:
    """Persistence interface for voice sessions; implementations raise StorageError"""

    async def find_active(self, user_id: str) -> Optional[VoiceSession]:
        raise NotImplementedError

    async def get(self, session_id: str) -> Optional[VoiceSession]:
        raise NotImplementedError

    async def create(self, session: VoiceSession) -> VoiceSession:
        raise NotImplementedError

    async def save(self, session: VoiceSession) -> None:
        raise NotImplementedError

    async def delete(self, session_id: str) -> bool:
        raise NotImplementedError

    async def delete_expired(self, now: datetime) -> int:
        raise NotImplementedError

    async def list_for_user(self, user_id: str, limit: int = 10) -> List[VoiceSession]:
        raise NotImplementedError


class InMemoryVoiceSessionStore(VoiceSessionStore):
    """Process-local store for development without MongoDB"""

    def __init__(self):
        self._sessions: Dict[str, VoiceSession] = {}

    async def find_active(self, user_id: str) -> Optional[VoiceSession]:
        now = datetime.utcnow()
        active = [
            s for s in self._sessions.values()
            if s.user_id == user_id and s.is_active and not s.is_expired(now)
        ]
        if not active:
            return None
        return max(active, key=lambda s: s.last_active_at).model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[VoiceSession]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def create(self, session: VoiceSession) -> VoiceSession:
        if session.session_id in self._sessions:
            raise StorageError(f"Voice session {session.session_id} already exists")
        self._sessions[session.session_id] = session.model_copy(deep=True)
        return session

    async def save(self, session: VoiceSession) -> None:
        if session.session_id not in self._sessions:
            raise StorageError(f"Voice session {session.session_id} no longer exists")
        self._sessions[session.session_id] = session.model_copy(deep=True)

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def delete_expired(self, now: datetime) -> int:
        expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    async def list_for_user(self, user_id: str, limit: int = 10) -> List[VoiceSession]:
        sessions = sorted(
            (s for s in self._sessions.values() if s.user_id == user_id),
            key=lambda s: s.last_active_at,
            reverse=True,
        )
        return [s.model_copy(deep=True) for s in sessions[:limit]]


class MongoVoiceSessionStore(VoiceSessionStore):
    """Beanie-backed store; requires init_beanie with VoiceSessionDocument"""

    async def _find_document(self, session_id: str) -> Optional[VoiceSessionDocument]:
        return await VoiceSessionDocument.find_one(VoiceSessionDocument.session_id == session_id)

    async def find_active(self, user_id: str) -> Optional[VoiceSession]:
        try:
            document = await VoiceSessionDocument.find(
                VoiceSessionDocument.user_id == user_id,
                VoiceSessionDocument.is_active == True,  # noqa: E712
                VoiceSessionDocument.expires_at > datetime.utcnow(),
            ).sort("-last_active_at").first_or_none()
        except PyMongoError as e:
            raise StorageError(f"Failed to look up active voice session: {e}") from e
        return document.session if document else None

    async def get(self, session_id: str) -> Optional[VoiceSession]:
        try:
            document = await self._find_document(session_id)
        except PyMongoError as e:
            raise StorageError(f"Failed to load voice session: {e}") from e
        return document.session if document else None

    async def create(self, session: VoiceSession) -> VoiceSession:
        try:
            await VoiceSessionDocument.from_session(session).insert()
        except PyMongoError as e:
            raise StorageError(f"Failed to create voice session: {e}") from e
        return session

    async def save(self, session: VoiceSession) -> None:
        # update only; a session deleted by end_call must never be re-created
        try:
            result = await VoiceSessionDocument.find_one(
                VoiceSessionDocument.session_id == session.session_id
            ).update(Set({
                VoiceSessionDocument.is_active: session.is_active,
                VoiceSessionDocument.last_active_at: session.last_active_at,
                VoiceSessionDocument.expires_at: session.expires_at,
                VoiceSessionDocument.session: session,
            }))
        except PyMongoError as e:
            raise StorageError(f"Failed to save voice session: {e}") from e
        if not result or not result.matched_count:
            raise StorageError(f"Voice session {session.session_id} no longer exists")

    async def delete(self, session_id: str) -> bool:
        try:
            result = await VoiceSessionDocument.find(VoiceSessionDocument.session_id == session_id).delete()
        except PyMongoError as e:
            raise StorageError(f"Failed to delete voice session: {e}") from e
        return bool(result and result.deleted_count)

    async def delete_expired(self, now: datetime) -> int:
        try:
            result = await VoiceSessionDocument.find(VoiceSessionDocument.expires_at < now).delete()
        except PyMongoError as e:
            raise StorageError(f"Failed to clean up voice sessions: {e}") from e
        return result.deleted_count if result else 0

    async def list_for_user(self, user_id: str, limit: int = 10) -> List[VoiceSession]:
        try:
            documents = await VoiceSessionDocument.find(
                VoiceSessionDocument.user_id == user_id
            ).sort("-last_active_at").limit(limit).to_list()
        except PyMongoError as e:
            raise StorageError(f"Failed to list voice sessions: {e}") from e
        return [document.session for document in documents]


class VoiceSessionService:
    """
    Lifecycle and memory operations for voice calls.

    Methods that take a session id acquire that session's lock; callers that
    already hold `lock(session_id)` work on the session object directly and
    persist it with `save_session`.
    """

    def __init__(self, store: VoiceSessionStore, ttl_seconds: int = None):
        self.store = store
        self.ttl_seconds = ttl_seconds or settings.VOICE_SESSION_TTL_SECONDS
        self._locks = KeyedLock()

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        async with self._locks.hold(f"session:{session_id}"):
            yield

    async def _start_or_resume(self, user_id: str) -> Tuple[VoiceSession, bool]:
        """Caller holds the user lock; a resumed session is also locked against end_call"""
        active = await self.store.find_active(user_id)
        if active:
            async with self.lock(active.session_id):
                # end_call may have deleted it while we waited
                session = await self.store.get(active.session_id)
                if session and not session.is_expired():
                    session.start_call()
                    await self.store.save(session)
                    return session, False

        session = VoiceSession.create(user_id, ttl_seconds=self.ttl_seconds)
        session.start_call()
        await self.store.create(session)
        logger.info("Started voice session %s for user %s", session.session_id, user_id)
        return session, True

    async def start_call(self, user_id: str) -> Dict[str, Any]:
        """Start a call, or resume the user's call that is already active"""
        async with self._locks.hold(f"user:{user_id}"):
            session, created = await self._start_or_resume(user_id)
        return {
            "sessionId": session.session_id,
            "isNewSession": created,
            "context": session.context_summary(),
            "preferences": session.preferences.model_dump(mode="json"),
        }

    async def ensure_active_session(self, user_id: str) -> VoiceSession:
        async with self._locks.hold(f"user:{user_id}"):
            session, _ = await self._start_or_resume(user_id)
        return session

    async def end_call(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Close the call and delete the whole session; a missing session is a no-op"""
        async with self.lock(session_id):
            session = await self.store.get(session_id)
            if not session:
                return None
            duration = session.end_call()
            await self.store.delete(session_id)
        logger.info("Ended voice session %s after %ss; session deleted", session_id, duration)
        return {
            "sessionId": session.session_id,
            "duration": duration,
            "totalCalls": session.stats.total_calls,
        }

    async def get_session(self, session_id: str) -> Optional[VoiceSession]:
        return await self.store.get(session_id)

    async def save_session(self, session: VoiceSession) -> None:
        await self.store.save(session)

    async def append_turn(
        self,
        session_id: str,
        role: Role,
        content: str,
        language: Language = Language.ENGLISH,
        emotion: Emotion = Emotion.NEUTRAL,
    ) -> ConversationTurn:
        async with self.lock(session_id):
            session = await self._require(session_id)
            turn = ConversationTurn(role=role, content=content, language=language, emotion=emotion)
            session.add_turn(turn)
            await self.store.save(session)
        return turn

    async def get_recent_context(self, session_id: str) -> str:
        session = await self.store.get(session_id)
        return session.transcript_text() if session else ""

    async def update_derived_context(
        self,
        session_id: str,
        message: str,
        language: Optional[Language] = None,
    ) -> Dict[str, Any]:
        async with self.lock(session_id):
            session = await self._require(session_id)
            session.apply_context_update(extract_context(message), language)
            await self.store.save(session)
        return session.context_summary()

    async def get_session_info(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = await self.store.get(session_id)
        if not session:
            return None
        return {
            "sessionId": session.session_id,
            "userId": session.user_id,
            "isActive": session.is_active,
            "context": session.context_summary(),
            "preferences": session.preferences.model_dump(mode="json"),
            "stats": session.stats.model_dump(),
            "createdAt": session.created_at.isoformat(),
            "lastActiveAt": session.last_active_at.isoformat(),
        }

    async def list_user_sessions(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        sessions = await self.store.list_for_user(user_id, limit)
        return [
            {
                "sessionId": s.session_id,
                "sessionType": s.session_type,
                "primaryTopics": list(s.session_context.primary_topics),
                "totalCalls": s.stats.total_calls,
                "totalDuration": s.stats.total_duration,
                "createdAt": s.created_at.isoformat(),
                "lastActiveAt": s.last_active_at.isoformat(),
            }
            for s in sessions
        ]

    async def cleanup_expired(self) -> int:
        deleted = await self.store.delete_expired(datetime.utcnow())
        logger.info("Cleaned up %d expired voice sessions", deleted)
        return deleted

    async def _require(self, session_id: str) -> VoiceSession:
        session = await self.store.get(session_id)
        if not session:
            raise StorageError(f"Voice session {session_id} not found")
        return session


def build_voice_session_store(config: Optional[Settings] = None) -> VoiceSessionStore:
    config = config or settings
    if config.use_memory_voice_store:
        return InMemoryVoiceSessionStore()
    return MongoVoiceSessionStore()
