"""
Language & Emotion Detection
Script and keyword heuristics over raw user text
"""
import re
from collections import Counter
from typing import Dict, Iterable

from app.models.conversation import Emotion, Language

DEVANAGARI_PATTERN = re.compile(r"[\u0900-\u097F]")
LATIN_PATTERN = re.compile(r"[A-Za-z]")

# Checked in this order; first hit wins
EMOTION_KEYWORDS = {
    Emotion.WORRIED: ["worried", "चिंतित", "परेशान", "डर", "afraid", "scared", "anxious"],
    Emotion.PAIN: ["pain", "दर्द", "hurt", "ache", "सूजन", "swelling", "uncomfortable"],
    Emotion.FRUSTRATED: ["frustrated", "angry", "गुस्सा", "irritated", "fed up"],
    Emotion.SAD: ["sad", "उदास", "depressed", "down", "low"],
    Emotion.HOPEFUL: ["better", "बेहतर", "improving", "good", "अच्छा", "positive"],
}

CASUAL_GREETINGS = [
    "hi", "hello", "hey", "hii", "helo", "namaste", "नमस्ते", "hola",
    "good morning", "good evening", "good afternoon",
]


def detect_language(text: str) -> Language:
    """Devanagari means Hindi, Latin letters mean English, both means Hinglish"""
    text = text or ""
    has_hindi = bool(DEVANAGARI_PATTERN.search(text))
    has_english = bool(LATIN_PATTERN.search(text))

    if has_hindi and has_english:
        return Language.HINGLISH
    if has_hindi:
        return Language.HINDI
    return Language.ENGLISH


def detect_emotion(text: str) -> Emotion:
    lowered = (text or "").lower()
    for emotion, keywords in EMOTION_KEYWORDS.items():
        if any(keyword.lower() in lowered for keyword in keywords):
            return emotion
    return Emotion.NEUTRAL


def is_greeting(text: str) -> bool:
    """True for a bare casual greeting such as "hi", "hello!" or "hey there" """
    message = (text or "").strip().lower()
    for greeting in CASUAL_GREETINGS:
        if (
            message == greeting
            or message.startswith(greeting + " ")
            or message.endswith(" " + greeting)
            or message == greeting + "!"
            or message == greeting + "."
        ):
            return True
    return False


def distribution(values: Iterable[str]) -> Dict[str, int]:
    return dict(Counter(values))
