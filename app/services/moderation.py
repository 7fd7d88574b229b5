"""
Moderation Service

Keyword and heuristic scorer that assigns the initial moderation status of
a review. It never rejects anything by itself; it only decides whether a
review goes live immediately (APPROVED), needs a human look (PENDING) or is
likely abuse (FLAGGED).

Scoring (0-100, higher = more problematic):
- spam phrase             +15 each
- inappropriate word      +25 each
- excessive capitals      +20  (more than half of the letters, text > 20 chars)
- more than 2 links       +10 per link
- content under 10 chars  +15
- a character repeated 5+ times in a row  +10
"""

import re
from dataclasses import dataclass, field

from app.config import get_settings
from app.models.review import ReviewStatus

settings = get_settings()

SPAM_PHRASES = (
    "buy now",
    "click here",
    "limited time",
    "act now",
    "free money",
    "make money fast",
    "work from home",
    "get rich quick",
    "guaranteed",
    "no risk",
)

INAPPROPRIATE_WORDS = (
    "hate",
    "violence",
    "abuse",
    "harassment",
    "discrimination",
    "offensive",
    "explicit",
    "inappropriate",
)

# Flags that always keep a review out of auto-approval
CRITICAL_FLAGS = frozenset({"spam", "inappropriate"})

MAX_SCORE = 100


def _keyword_pattern(keywords: tuple[str, ...]) -> list[re.Pattern[str]]:
    return [
        re.compile(r"\b" + r"\s+".join(map(re.escape, kw.split())) + r"\b", re.IGNORECASE)
        for kw in keywords
    ]


_SPAM_PATTERNS = _keyword_pattern(SPAM_PHRASES)
_INAPPROPRIATE_PATTERNS = _keyword_pattern(INAPPROPRIATE_WORDS)
_LINK_PATTERN = re.compile(r"https?://", re.IGNORECASE)
_REPEAT_PATTERN = re.compile(r"(.)\1{4,}", re.IGNORECASE | re.DOTALL)


@dataclass
class ModerationResult:
    """Outcome of a content check."""

    score: int = 0
    flags: list[str] = field(default_factory=list)

    @property
    def has_critical_flags(self) -> bool:
        return any(flag in CRITICAL_FLAGS for flag in self.flags)


def check_content(content: str, title: str | None = None) -> ModerationResult:
    """
    Score a review's text.

    Args:
        content: Review body
        title: Optional review title, checked together with the body

    Returns:
        ModerationResult with the capped score and the triggered flags
    """
    text = f"{title or ''} {content}"
    result = ModerationResult()

    spam_matches = sum(1 for pattern in _SPAM_PATTERNS if pattern.search(text))
    if spam_matches:
        result.flags.append("spam")
        result.score += spam_matches * 15

    inappropriate_matches = sum(1 for pattern in _INAPPROPRIATE_PATTERNS if pattern.search(text))
    if inappropriate_matches:
        result.flags.append("inappropriate")
        result.score += inappropriate_matches * 25

    letters = [ch for ch in text if ch.isalpha()]
    if letters and len(text) > 20:
        caps_ratio = sum(1 for ch in letters if ch.isupper()) / len(letters)
        if caps_ratio > 0.5:
            result.flags.append("excessive_caps")
            result.score += 20

    links = _LINK_PATTERN.findall(text)
    if len(links) > 2:
        result.flags.append("excessive_links")
        result.score += len(links) * 10

    if len(content.strip()) < 10:
        result.flags.append("too_short")
        result.score += 15

    if _REPEAT_PATTERN.search(text):
        result.flags.append("repetitive")
        result.score += 10

    result.score = min(result.score, MAX_SCORE)
    return result


def get_moderation_score(content: str, title: str | None = None) -> int:
    """Return only the 0-100 score."""
    return check_content(content, title).score


def should_auto_approve(content: str, title: str | None = None) -> bool:
    """
    Whether a review can be published without human review.

    Requires a score below the configured threshold and no spam or
    inappropriate flag, whatever the score.
    """
    result = check_content(content, title)
    return (
        result.score < settings.moderation_auto_approve_below
        and not result.has_critical_flags
    )


def get_initial_status(content: str, title: str | None = None) -> ReviewStatus:
    """
    Decide the status a new or edited review starts in.

    Returns:
        APPROVED when auto-approvable, FLAGGED when the score reaches the
        flag threshold, PENDING otherwise
    """
    result = check_content(content, title)
    if (
        result.score < settings.moderation_auto_approve_below
        and not result.has_critical_flags
    ):
        return ReviewStatus.APPROVED

    if result.score >= settings.moderation_flag_at:
        return ReviewStatus.FLAGGED

    return ReviewStatus.PENDING
