"""
Text Chat Memory
In-process rolling transcript per user; lives until cleared or the process restarts
"""
from collections import deque
from typing import Any, Deque, Dict, List

from app.ai.detector import distribution
from app.config import settings
from app.models.conversation import ConversationTurn, Emotion, Language, Role


class TranscriptStore:
    """Keeps the most recent `max_turns` turns per user (oldest evicted first)"""

    def __init__(self, max_turns: int = None, context_turns: int = None):
        self.max_turns = max_turns or settings.TRANSCRIPT_MAX_TURNS
        self.context_turns = context_turns or settings.TRANSCRIPT_CONTEXT_TURNS
        self._transcripts: Dict[str, Deque[ConversationTurn]] = {}

    def _transcript(self, user_id: str) -> Deque[ConversationTurn]:
        if user_id not in self._transcripts:
            self._transcripts[user_id] = deque(maxlen=self.max_turns)
        return self._transcripts[user_id]

    def append_turn(
        self,
        user_id: str,
        role: Role,
        content: str,
        language: Language = Language.ENGLISH,
        emotion: Emotion = Emotion.NEUTRAL,
    ) -> ConversationTurn:
        turn = ConversationTurn(role=role, content=content, language=language, emotion=emotion)
        self._transcript(user_id).append(turn)
        return turn

    def get_recent_context(self, user_id: str) -> str:
        turns = list(self._transcripts.get(user_id, ()))[-self.context_turns:]
        return "\n".join(turn.as_line() for turn in turns)

    def history(self, user_id: str) -> List[ConversationTurn]:
        return list(self._transcripts.get(user_id, ()))

    def clear(self, user_id: str) -> bool:
        return self._transcripts.pop(user_id, None) is not None

    def stats(self, user_id: str) -> Dict[str, Any]:
        turns = self.history(user_id)
        return {
            "totalMessages": len(turns),
            "languageDistribution": distribution(turn.language.value for turn in turns),
            "emotionDistribution": distribution(turn.emotion.value for turn in turns),
            "lastActivity": turns[-1].timestamp.isoformat() if turns else None,
        }
