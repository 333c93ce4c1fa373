"""
Voice Session Routes
Call lifecycle: start, end, inspect and clean up voice sessions
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from app.ai.orchestrator import ConversationOrchestrator
from app.api.routes.chat import get_orchestrator
from app.errors import StorageError, ValidationError
from app.utils.logging_config import get_logger


router = APIRouter()
logger = get_logger(__name__)


class StartSessionRequest(BaseModel):
    userId: Optional[str] = None


class EndSessionRequest(BaseModel):
    sessionId: Optional[str] = None


def _storage_failure(action: str, error: StorageError) -> HTTPException:
    logger.error("Voice session %s failed: %s", action, error)
    return HTTPException(status_code=500, detail=f"Failed to {action} voice session")


@router.post("/voice/session/start")
async def start_voice_session(
    request: StartSessionRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    """
    Start a call, or resume the user's call that is still active
    """
    if not request.userId:
        raise ValidationError("User id is required", field="userId")
    try:
        result = await orchestrator.voice.start_call(request.userId)
    except StorageError as e:
        raise _storage_failure("start", e)
    return {"success": True, **result}


@router.post("/voice/session/end")
async def end_voice_session(
    request: EndSessionRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    """
    End the call; the session and its transcript are deleted
    """
    if not request.sessionId:
        raise ValidationError("Session id is required", field="sessionId")
    try:
        result = await orchestrator.voice.end_call(request.sessionId)
    except StorageError as e:
        raise _storage_failure("end", e)
    if not result:
        raise HTTPException(status_code=404, detail="Voice session not found")
    return {"success": True, "message": "Voice session ended and deleted", **result}


@router.post("/voice/session/history")
async def get_voice_session_history(
    request: EndSessionRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    """
    Full call transcript in append order, with the topics derived so far
    """
    if not request.sessionId:
        raise ValidationError("Session id is required", field="sessionId")
    try:
        session = await orchestrator.voice.get_session(request.sessionId)
    except StorageError as e:
        raise _storage_failure("load", e)
    if not session:
        raise HTTPException(status_code=404, detail="Voice session not found")

    context = session.session_context
    return {
        "success": True,
        "sessionId": session.session_id,
        "conversationHistory": [turn.model_dump(mode="json") for turn in session.transcript],
        "primaryTopics": list(context.primary_topics),
        "currentTopic": context.current_topic,
        "patientCondition": context.patient_condition,
        "createdAt": session.created_at.isoformat(),
        "lastActiveAt": session.last_active_at.isoformat(),
    }


@router.get("/voice/session/{session_id}")
async def get_voice_session(
    session_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    try:
        info = await orchestrator.voice.get_session_info(session_id)
    except StorageError as e:
        raise _storage_failure("load", e)
    if not info:
        raise HTTPException(status_code=404, detail="Voice session not found")
    return {"success": True, "session": info}


@router.get("/voice/sessions/{user_id}")
async def list_voice_sessions(
    user_id: str,
    limit: int = 10,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    try:
        sessions = await orchestrator.voice.list_user_sessions(user_id, limit)
    except StorageError as e:
        raise _storage_failure("list", e)
    return {"success": True, "userId": user_id, "sessions": sessions}


@router.post("/voice/cleanup")
async def cleanup_voice_sessions(
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    try:
        deleted = await orchestrator.voice.cleanup_expired()
    except StorageError as e:
        raise _storage_failure("clean up", e)
    return {"success": True, "deletedCount": deleted}
