"""Free rule-based ATS check run on every upload.

Scoring (max 100):
  contact info   20  (email 10, phone 10)
  sections       40  (10 per standard header)
  action verbs   20  (at least 3 distinct)
  length         10  (200-1500 words)
  formatting     10  (<1% unusual symbols)
"""

import re

from resumeopt.models.schemas import BasicAtsResult, FeedbackItem, FeedbackType

EMAIL_RE = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}")
PHONE_RE = re.compile(r"(\+?\d{1,3}[-.\s]?)?(\(?\d{3}\)?[-.\s]?)?\d{3}[-.\s]?\d{4}")
PLAIN_CHARS_RE = re.compile(r"[a-zA-Z0-9\s.,@()*+/-]")

SECTIONS = ("experience", "education", "skills", "summary")
ACTION_VERBS = (
    "managed", "developed", "led", "created", "implemented",
    "coordinated", "analyzed", "designed", "achieved",
)
MIN_WORDS = 200
MAX_WORDS = 1500


def _positive(message: str) -> FeedbackItem:
    return FeedbackItem(type=FeedbackType.positive, message=message)


def _negative(message: str) -> FeedbackItem:
    return FeedbackItem(type=FeedbackType.negative, message=message)


def check_resume(text: str) -> BasicAtsResult:
    lower = text.lower()
    score = 0
    feedback: list[FeedbackItem] = []

    if EMAIL_RE.search(lower):
        score += 10
        feedback.append(_positive("Email address found."))
    else:
        feedback.append(_negative("Consider adding a clear email address."))

    # original case so spaced-out numbers still match
    if PHONE_RE.search(text):
        score += 10
        feedback.append(_positive("Phone number found."))
    else:
        feedback.append(_negative("Consider adding a clear phone number."))

    for section in SECTIONS:
        title = section.capitalize()
        if section in lower:
            score += 10
            feedback.append(_positive(f"Section found: {title}."))
        else:
            feedback.append(_negative(f"Consider adding a standard '{title}' section."))

    verbs_used = sum(1 for verb in ACTION_VERBS if verb in lower)
    if verbs_used >= 3:
        score += 20
        feedback.append(_positive("Good use of action verbs detected."))
    else:
        feedback.append(
            _negative("Enhance descriptions with strong action verbs (e.g., Managed, Developed, Implemented).")
        )

    word_count = len(text.split())
    if MIN_WORDS < word_count < MAX_WORDS:
        score += 10
        feedback.append(_positive("Resume length seems reasonable."))
    elif word_count <= MIN_WORDS:
        feedback.append(_negative("Resume seems short. Consider elaborating on experience or skills."))
    else:
        feedback.append(_negative("Resume seems long. Consider summarizing or being more concise."))

    special = len(PLAIN_CHARS_RE.sub("", text))
    if text and special / len(text) < 0.01:
        score += 10
        feedback.append(_positive("Simple formatting detected, generally good for ATS."))
    else:
        feedback.append(
            _negative(
                "Potential complex formatting detected (e.g., excessive symbols, tables). "
                "Ensure ATS compatibility."
            )
        )

    feedback.sort(key=lambda item: item.type is not FeedbackType.positive)
    return BasicAtsResult(score=max(0, min(100, score)), feedback=feedback)
