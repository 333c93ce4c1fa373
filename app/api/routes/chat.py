"""
Chat Routes
Text/voice message handling, greetings and text conversation memory
"""
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional

from app.ai.detector import detect_language
from app.ai.orchestrator import ConversationOrchestrator
from app.models.conversation import ChatResult, Language


router = APIRouter()


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    """Orchestrator built during application startup"""
    return request.app.state.orchestrator


class ChatMessageRequest(BaseModel):
    """Inbound chat message"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: Optional[str] = None
    user_id: Optional[str] = None
    source: str = "text"
    session_id: Optional[str] = None


class GreetingRequest(BaseModel):
    language: Optional[Language] = None
    text: Optional[str] = None


@router.post("/chat/message", response_model=ChatResult)
async def send_message(
    request: ChatMessageRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    """
    Answer one message; safety, greeting, rate limit and cache paths never reach the LLM
    """
    return await orchestrator.handle_message(
        user_id=request.user_id,
        message=request.query,
        source=request.source,
        session_id=request.session_id,
    )


@router.post("/greeting")
async def get_greeting(
    request: GreetingRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    language = request.language
    if language is None:
        language = detect_language(request.text) if request.text else Language.ENGLISH
    return {
        "success": True,
        "greeting": orchestrator.greeting(language),
    }


@router.get("/conversation/{user_id}")
async def get_conversation(
    user_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    history = orchestrator.transcripts.history(user_id)
    return {
        "success": True,
        "userId": user_id,
        "history": [turn.model_dump(mode="json") for turn in history],
    }


@router.delete("/conversation/{user_id}")
async def clear_conversation(
    user_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    cleared = orchestrator.transcripts.clear(user_id)
    return {
        "success": True,
        "cleared": cleared,
        "message": "Conversation history cleared" if cleared else "No conversation history found",
    }


@router.get("/conversation/{user_id}/stats")
async def get_conversation_stats(
    user_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator)
):
    return {
        "success": True,
        "userId": user_id,
        "stats": orchestrator.transcripts.stats(user_id),
    }
