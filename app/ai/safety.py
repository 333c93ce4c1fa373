"""
Safety Interceptor
Refuses requests to deliberately worsen pain or an injury before any model call
"""
from typing import Optional

from app.ai.detector import detect_language
from app.models.conversation import Language

# Single shared table for text chat and voice calls
HARMFUL_PHRASES = [
    # English
    "increase my knee pain", "increase knee pain", "increase my pain", "increase the pain",
    "increase pain", "make my knee hurt more", "make knee hurt more", "hurt more",
    "make it worse", "make my pain worse", "worsen my pain", "worsen the injury",
    "increase my swelling", "increase swelling", "increase inflammation",
    # Hindi
    "बढ़ाना घुटने का दर्द", "घुटने का दर्द बढ़ाना", "घुटने में ज्यादा दर्द करना", "दर्द बढ़ाना",
    "और दर्द करना", "और खराब करना", "सूजन बढ़ाना",
    # Romanized Hindi
    "badhana ghutne ka dard", "ghutne ka dard badhana", "ghutne mein zyada dard karna",
    "dard badhana", "aur dard karna", "aur kharab karna", "sujan badhana",
]

REFUSALS = {
    Language.ENGLISH: (
        "I cannot advise you to do that! Increasing knee pain can be harmful to your health. "
        "Do you want to know about the causes of knee pain? Or do you need some advice to reduce knee pain?"
    ),
    Language.HINDI: (
        "मैं आपको ऐसा करने की सलाह नहीं दे सकती! घुटने में दर्द को बढ़ाना स्वास्थ्य के लिए हानिकारक हो सकता है। "
        "क्या आपको घुटने के दर्द के कारण के बारे में जानना है? या फिर घुटने के दर्द को कम करने के लिए कुछ सलाह चाहिए?"
    ),
    Language.HINGLISH: (
        "Main aapko aisa karne ki salah nahi de sakti! घुटने का दर्द बढ़ाना health ke liye harmful ho sakta hai. "
        "Kya aap knee pain ke causes jaanna chahte hain? Ya phir दर्द कम करने के लिए kuch tips chahiye?"
    ),
}


def is_harmful(text: str) -> bool:
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in HARMFUL_PHRASES)


def check_harmful(text: str, language: Optional[Language] = None) -> Optional[str]:
    """
    Screen a query for intent to worsen a condition.

    Returns:
        A refusal in the user's language, or None when the query is safe
    """
    if not is_harmful(text):
        return None
    language = language or detect_language(text)
    return REFUSALS.get(language, REFUSALS[Language.ENGLISH])
