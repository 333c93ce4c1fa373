"""
Voice Session Models
Call-scoped conversation memory for voice calls.
A session lives for exactly one call and is deleted when the call ends.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pymongo
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import IndexModel

from app.models.conversation import ConversationTurn, Language

MAX_CONCERNS = 10


class SessionContext(BaseModel):
    """Structured summary derived from the user's messages"""
    primary_topics: List[str] = Field(default_factory=list)
    current_topic: Optional[str] = None
    patient_condition: Optional[str] = None  # e.g. "post knee surgery recovery"
    recovery_stage: Optional[str] = None  # e.g. "week 2 post-op"
    concerns: List[str] = Field(default_factory=list)
    last_discussed_symptoms: List[str] = Field(default_factory=list)


class SessionPreferences(BaseModel):
    preferred_language: Language = Language.ENGLISH
    communication_style: str = "empathetic"  # formal, casual, empathetic
    response_length: str = "brief"  # brief, detailed


class SessionStats(BaseModel):
    total_calls: int = 0
    total_duration: int = 0  # seconds
    average_call_duration: int = 0
    last_call_duration: int = 0
    message_count: int = 0


class ContextUpdate(BaseModel):
    """Signals extracted from one user message"""
    topic: Optional[str] = None
    condition: Optional[str] = None
    concerns: List[str] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)


def new_session_id(user_id: str) -> str:
    return f"voice_{user_id}_{uuid.uuid4().hex[:12]}"


class VoiceSession(BaseModel):
    """A single voice call's memory and statistics"""
    session_id: str
    user_id: str
    session_type: str = "voice_call"
    is_active: bool = False
    transcript: List[ConversationTurn] = Field(default_factory=list)
    session_context: SessionContext = Field(default_factory=SessionContext)
    preferences: SessionPreferences = Field(default_factory=SessionPreferences)
    stats: SessionStats = Field(default_factory=SessionStats)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_active_at: datetime = Field(default_factory=datetime.utcnow)
    call_started_at: Optional[datetime] = None
    call_ended_at: Optional[datetime] = None
    expires_at: datetime

    @classmethod
    def create(cls, user_id: str, ttl_seconds: int = 3600, now: Optional[datetime] = None) -> "VoiceSession":
        now = now or datetime.utcnow()
        return cls(
            session_id=new_session_id(user_id),
            user_id=user_id,
            created_at=now,
            last_active_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )

    def start_call(self, now: Optional[datetime] = None) -> bool:
        """Mark the call active; returns False when it was already active"""
        now = now or datetime.utcnow()
        started = not self.is_active
        if started:
            self.stats.total_calls += 1
            self.call_started_at = now
        self.is_active = True
        self.last_active_at = now
        return started

    def end_call(self, now: Optional[datetime] = None) -> int:
        """Close the call and fold its duration into the stats"""
        now = now or datetime.utcnow()
        self.is_active = False
        self.call_ended_at = now
        duration = 0
        if self.call_started_at:
            duration = max(0, int((now - self.call_started_at).total_seconds()))
            self.stats.last_call_duration = duration
            self.stats.total_duration += duration
            if self.stats.total_calls:
                self.stats.average_call_duration = self.stats.total_duration // self.stats.total_calls
        return duration

    def add_turn(self, turn: ConversationTurn) -> None:
        # no cap while the call is running
        self.transcript.append(turn)
        self.stats.message_count += 1
        self.last_active_at = turn.timestamp

    def apply_context_update(self, update: ContextUpdate, language: Optional[Language] = None) -> None:
        context = self.session_context
        if update.topic:
            if update.topic not in context.primary_topics:
                context.primary_topics.append(update.topic)
            context.current_topic = update.topic
        if update.condition:
            context.patient_condition = update.condition
        if update.concerns:
            merged = list(dict.fromkeys(context.concerns + update.concerns))
            context.concerns = merged[-MAX_CONCERNS:]
        if update.symptoms:
            context.last_discussed_symptoms = list(update.symptoms)
        if language and language != self.preferences.preferred_language:
            self.preferences.preferred_language = language
        self.last_active_at = datetime.utcnow()

    def transcript_text(self) -> str:
        return "\n".join(turn.as_line() for turn in self.transcript)

    def context_summary(self) -> Dict[str, Any]:
        context = self.session_context
        return {
            "primaryTopics": list(context.primary_topics),
            "currentTopic": context.current_topic,
            "patientCondition": context.patient_condition,
            "recoveryStage": context.recovery_stage,
            "recentConcerns": list(context.concerns),
            "lastSymptoms": list(context.last_discussed_symptoms),
            "recentConversation": self.transcript_text(),
            "callHistory": {
                "totalCalls": self.stats.total_calls,
                "averageDuration": self.stats.average_call_duration,
            },
        }

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at


class VoiceSessionDocument(Document):
    """MongoDB record wrapping a VoiceSession; lookup keys are lifted to the top level"""

    session_id: Indexed(str, unique=True)
    user_id: Indexed(str)
    is_active: bool = False
    last_active_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime
    session: VoiceSession

    @classmethod
    def from_session(cls, session: VoiceSession) -> "VoiceSessionDocument":
        return cls(
            session_id=session.session_id,
            user_id=session.user_id,
            is_active=session.is_active,
            last_active_at=session.last_active_at,
            expires_at=session.expires_at,
            session=session,
        )

    class Settings:
        name = "voice_sessions"
        indexes = [
            IndexModel([("user_id", pymongo.ASCENDING), ("last_active_at", pymongo.DESCENDING)]),
            IndexModel([("user_id", pymongo.ASCENDING), ("is_active", pymongo.ASCENDING)]),
            # Mongo drops abandoned calls on its own once expires_at passes
            IndexModel([("expires_at", pymongo.ASCENDING)], expireAfterSeconds=0),
        ]
