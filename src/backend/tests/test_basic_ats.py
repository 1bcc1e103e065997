"""Tests for the free rule-based ATS check."""

from resumeopt.models.schemas import FeedbackType
from resumeopt.services.basic_ats import check_resume

from conftest import RESUME_TEXT


def _long_resume(words: int = 300) -> str:
    filler = " ".join(["python"] * words)
    return (
        "jane@example.com 555-123-4567\n"
        "Summary Experience Education Skills\n"
        "Managed Developed Implemented Designed\n"
        f"{filler}"
    )


def test_complete_resume_scores_100():
    result = check_resume(_long_resume())
    assert result.score == 100
    assert all(item.type == FeedbackType.positive for item in result.feedback)


def test_empty_text_scores_zero():
    result = check_resume("")
    assert result.score == 0
    assert all(item.type == FeedbackType.negative for item in result.feedback)


def test_contact_info_is_worth_twenty():
    without = check_resume("Experience Education")
    with_contact = check_resume("jane@example.com (555) 123-4567 Experience Education")
    assert with_contact.score - without.score == 20


def test_each_section_adds_ten():
    baseline = check_resume("x").score
    assert check_resume("skills").score == baseline + 10
    assert check_resume("skills education").score == baseline + 20


def test_two_action_verbs_are_not_enough():
    messages = [item.message for item in check_resume("managed developed").feedback]
    assert any("action verbs" in m and "Enhance" in m for m in messages)


def test_short_resume_flagged():
    messages = [item.message for item in check_resume(RESUME_TEXT).feedback]
    assert "Resume seems short. Consider elaborating on experience or skills." in messages


def test_long_resume_flagged():
    messages = [item.message for item in check_resume(_long_resume(1600)).feedback]
    assert "Resume seems long. Consider summarizing or being more concise." in messages


def test_symbol_heavy_text_loses_formatting_points():
    plain = _long_resume()
    noisy = plain + " " + "★" * 50
    assert check_resume(noisy).score == check_resume(plain).score - 10


def test_positive_feedback_listed_first():
    feedback = check_resume(RESUME_TEXT).feedback
    types = [item.type for item in feedback]
    first_negative = types.index(FeedbackType.negative)
    assert FeedbackType.positive not in types[first_negative:]


def test_score_stays_in_range():
    for text in ("", RESUME_TEXT, _long_resume(), "@@@@@"):
        assert 0 <= check_resume(text).score <= 100
