"""
Canned Replies & Post-processing
Localized fixed messages and the truncated-answer check
"""
import re

from app.models.conversation import Language

GREETINGS = {
    Language.ENGLISH: (
        "Hi! 👋 I'm OrthoBot AI, your friendly assistant for orthopedic recovery and physiotherapy guidance. "
        "I'm here to help you with exercises, pain management, rehabilitation tips, and recovery advice. "
        "What would you like to know about your recovery journey? 😊"
    ),
    Language.HINDI: (
        "नमस्ते! मैं OrthoBot हूँ। मैं आपकी orthopedic recovery में मदद करने के लिए यहाँ हूँ। आपको क्या परेशानी है?"
    ),
    Language.HINGLISH: (
        "हैलो! मैं OrthoBot हूं। मैं आपकी orthopedic recovery में help करने के लिए यहां हूं। आपको क्या problem है?"
    ),
}

FALLBACK_MESSAGES = {
    Language.ENGLISH: "I'm sorry, I'm experiencing some technical difficulties. Please try again in a moment.",
    Language.HINDI: "माफ करें, मुझे कुछ तकनीकी समस्या हो रही है। कृपया थोड़ी देर बाद कोशिश करें।",
    Language.HINGLISH: "Sorry, mujhe kuch technical problem ho rahi hai. Please thoda wait karke try kijiye.",
}

RATE_LIMIT_MESSAGES = {
    Language.ENGLISH: "You're sending messages a little too quickly. Please take a short pause and try again in a minute.",
    Language.HINDI: "आप बहुत जल्दी-जल्दी संदेश भेज रहे हैं। कृपया एक मिनट रुककर फिर से कोशिश करें।",
    Language.HINGLISH: "Aap thoda jaldi-jaldi messages bhej rahe hain. Please ek minute ruk kar phir try kijiye.",
}

MORE_DETAILS_SUFFIX = {
    Language.ENGLISH: "... Could you share a few more details so I can help you better?",
    Language.HINDI: "... क्या आप थोड़ा और विस्तार से बता सकते हैं ताकि मैं बेहतर मदद कर सकूँ?",
    Language.HINGLISH: "... Kya aap thoda aur detail mein bata sakte hain taaki main better help kar sakun?",
}

# A reply matching any of these was most likely cut off by the token limit
INCOMPLETE_PATTERNS = [
    re.compile(r"\s$"),
    re.compile(
        r"\b(and|or|but|so|because|with|without|to|for|of|in|on|at|by|from|the|a|an|if|that|which|like|about)$",
        re.IGNORECASE,
    ),
    re.compile(r"[a-z]$"),
]


def _localized(table, language: Language) -> str:
    return table.get(language, table[Language.ENGLISH])


def greeting_for(language: Language) -> str:
    return _localized(GREETINGS, language)


def fallback_for(language: Language) -> str:
    return _localized(FALLBACK_MESSAGES, language)


def rate_limited_for(language: Language) -> str:
    return _localized(RATE_LIMIT_MESSAGES, language)


def is_incomplete(text: str) -> bool:
    return any(pattern.search(text) for pattern in INCOMPLETE_PATTERNS)


def complete_response(text: str, language: Language) -> str:
    """Append an ask-for-details suffix when the reply looks truncated"""
    if not is_incomplete(text):
        return text
    return text.rstrip() + _localized(MORE_DETAILS_SUFFIX, language)
