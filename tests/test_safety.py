from app.ai.safety import REFUSALS, check_harmful, is_harmful
from app.models.conversation import Language


def test_english_request_to_worsen_pain_is_refused():
    refusal = check_harmful("How can I INCREASE my knee pain?")
    assert refusal == REFUSALS[Language.ENGLISH]


def test_hindi_request_is_refused_in_hindi():
    refusal = check_harmful("घुटने का दर्द बढ़ाना है कैसे")
    assert refusal == REFUSALS[Language.HINDI]


def test_romanized_hindi_phrase_is_matched():
    assert is_harmful("mujhe ghutne ka dard badhana hai")


def test_explicit_language_overrides_detection():
    refusal = check_harmful("please make it worse", Language.HINGLISH)
    assert refusal == REFUSALS[Language.HINGLISH]


def test_safe_queries_pass_through():
    assert check_harmful("How do I reduce knee pain?") is None
    assert check_harmful("") is None
