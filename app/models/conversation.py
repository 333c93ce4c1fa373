"""
Conversation Models
Turns, detection tags and the orchestrator result
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.knowledge import KnowledgeReference


class Language(str, Enum):
    """Detected input language"""
    HINDI = "hindi"
    ENGLISH = "english"
    HINGLISH = "hinglish"


class Emotion(str, Enum):
    """Detected emotional category"""
    NEUTRAL = "neutral"
    WORRIED = "worried"
    PAIN = "pain"
    FRUSTRATED = "frustrated"
    SAD = "sad"
    HOPEFUL = "hopeful"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ResultSource(str, Enum):
    """Which pipeline path produced the answer"""
    GREETING = "greeting"
    SAFETY = "safety"
    RATE_LIMIT = "rate_limit"
    CACHE = "cache"
    LLM = "llm"
    FALLBACK = "fallback"


class MessageSource(str, Enum):
    TEXT = "text"
    VOICE = "voice"


class ConversationTurn(BaseModel):
    """One message in a transcript; never mutated after it is appended"""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    language: Language = Language.ENGLISH
    emotion: Emotion = Emotion.NEUTRAL

    def as_line(self) -> str:
        return f"{self.role.value}: {self.content}"


class ChatResult(BaseModel):
    """Structured answer returned for every inbound message"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    response: str
    detected_language: Language
    detected_emotion: Emotion = Emotion.NEUTRAL
    conversation_id: str
    source: ResultSource
    has_kb_content: bool = Field(default=False, alias="hasKBContent")
    reference: Optional[KnowledgeReference] = None
    session_id: Optional[str] = None
    session_context: Optional[Dict[str, Any]] = None
    session_active: Optional[bool] = None
