"""
Prompt Builder
System prompts for text chat and voice calls
"""
from typing import Optional

from app.models.conversation import Emotion, Language
from app.models.voice_session import VoiceSession

TONE_INSTRUCTIONS = {
    Emotion.WORRIED: "The user sounds worried. Reassure them calmly before giving any guidance.",
    Emotion.PAIN: "The user is in pain. Acknowledge it with empathy first, then ask where it hurts and since when.",
    Emotion.FRUSTRATED: "The user is frustrated. Be patient, acknowledge the difficulty and keep it simple.",
    Emotion.SAD: "The user feels low. Be gentle and encouraging, and remind them recovery takes time.",
    Emotion.HOPEFUL: "The user is feeling positive. Encourage their progress and help them keep it up.",
    Emotion.NEUTRAL: "Use a warm, friendly and supportive tone.",
}

PERSONA = """You are OrthoBot AI, a friendly and caring healthcare companion who talks naturally like a real person.
You help people with orthopedic care and recovery and speak both Hindi and English fluently.

CORE IDENTITY:
- Talk like a caring friend who happens to be a physiotherapy expert
- Specialized in post-operative care, rehabilitation exercises, pain management, wound care and mobility
- Show real empathy and understanding"""

SAFETY_RULES = """SAFETY PROTOCOLS:
- Include a short medical disclaimer when giving advice
- Recognize emergency symptoms and advise immediate medical care
- Never diagnose or prescribe medications
- Never help anyone deliberately worsen pain or an injury
- Encourage professional medical consultation when needed"""


def language_instruction(language: Language) -> str:
    if language == Language.HINGLISH:
        return "Respond only in hinglish: mix Hindi and English naturally, the way the user writes."
    return f"Respond only in {language.value}."


def _knowledge_block(knowledge_context: Optional[str]) -> str:
    if not knowledge_context:
        return ""
    return (
        "\n\nKNOWLEDGE BASE CONTEXT (use it when relevant; never invent contact details):\n"
        f"{knowledge_context}"
    )


def build_text_prompt(
    language: Language,
    emotion: Emotion,
    memory: str = "",
    knowledge_context: Optional[str] = None,
) -> str:
    prompt = f"""{PERSONA}

LANGUAGE:
- User is communicating in: {language.value}
- {language_instruction(language)}

EMOTIONAL INTELLIGENCE:
- User's current emotional state: {emotion.value}
- {TONE_INSTRUCTIONS[emotion]}

{SAFETY_RULES}

RESPONSE FORMAT:
- Keep responses short and conversational (1-3 sentences)
- Ask ONE direct follow-up question about their specific problem
- Plain text only"""

    if memory:
        prompt += f"\n\nPrevious conversation context:\n{memory}"
    return prompt + _knowledge_block(knowledge_context)


def build_voice_prompt(
    language: Language,
    emotion: Emotion,
    session: VoiceSession,
    knowledge_context: Optional[str] = None,
) -> str:
    """Voice calls carry the full call transcript plus the derived session context"""
    summary = session.context_summary()
    calls = summary["callHistory"]

    if calls["totalCalls"] > 1:
        call_history = (
            f"This is call #{calls['totalCalls']} with this user. "
            f"Previous calls averaged {calls['averageDuration']} seconds."
        )
    else:
        call_history = "This is the first call with this user."

    if summary["primaryTopics"]:
        topics = (
            f"Topics discussed: {', '.join(summary['primaryTopics'])}. "
            f"Current focus: {summary['currentTopic'] or 'General consultation'}."
        )
    else:
        topics = "No topics discussed yet."

    if summary["patientCondition"]:
        condition = (
            f"Patient condition: {summary['patientCondition']}. "
            f"Recovery stage: {summary['recoveryStage'] or 'Not specified'}."
        )
    else:
        condition = "Patient condition not yet established."

    concerns = (
        f"Recent concerns: {', '.join(summary['recentConcerns'])}."
        if summary["recentConcerns"] else "No specific concerns noted yet."
    )
    symptoms = (
        f"Symptoms mentioned: {', '.join(summary['lastSymptoms'])}."
        if summary["lastSymptoms"] else ""
    )
    conversation = summary["recentConversation"] or "No conversation yet."
    preferences = session.preferences
    length = "concise and direct" if preferences.response_length == "brief" else "detailed and thorough"

    prompt = f"""{PERSONA}
You have complete memory of everything said during this call and refer back to it naturally.

COMPLETE CONVERSATION MEMORY:
{conversation}

MEMORY CONTEXT:
{call_history}
{topics}
{condition}
{concerns}
{symptoms}

LANGUAGE:
- User is communicating in: {language.value}
- {language_instruction(language)}
- User prefers: {preferences.preferred_language.value}
- Communication style: {preferences.communication_style}

EMOTIONAL INTELLIGENCE:
- User's current emotional state: {emotion.value}
- {TONE_INSTRUCTIONS[emotion]}

{SAFETY_RULES}

RESPONSE FORMAT:
- This is a voice call: 1-3 short spoken sentences, no lists or symbols
- Be {length}
- Ask ONE direct question about their current situation"""

    return prompt + _knowledge_block(knowledge_context)
