"""
Tests for the content screening heuristic.

Covers:
- Individual scoring rules (spam, inappropriate words, caps, links,
  short content, repeated characters)
- Score capping
- Initial status selection (APPROVED / PENDING / FLAGGED)
"""

from app.models.review import ReviewStatus
from app.services.moderation import (
    MAX_SCORE,
    check_content,
    get_initial_status,
    get_moderation_score,
    should_auto_approve,
)


class TestCheckContent:
    """Scoring rules of check_content()."""

    def test_clean_content_scores_zero(self):
        result = check_content("The sound was excellent and the staff were friendly.")

        assert result.score == 0
        assert result.flags == []
        assert result.has_critical_flags is False

    def test_spam_phrase(self):
        result = check_content("Great night. Click here to win tickets for next year!")

        assert "spam" in result.flags
        assert result.score == 15
        assert result.has_critical_flags is True

    def test_multiple_spam_phrases_add_up(self):
        result = check_content("Buy now, limited time offer, act now before it ends.")

        assert result.score == 45

    def test_spam_phrase_in_title(self):
        result = check_content("A perfectly normal review of the show.", title="Buy now")

        assert "spam" in result.flags

    def test_keywords_match_whole_words_only(self):
        """'whatever' contains 'hate' but is not an inappropriate word."""
        result = check_content("Whatever the weather, the festival was a blast.")

        assert "inappropriate" not in result.flags
        assert result.score == 0

    def test_inappropriate_words(self):
        result = check_content("Full of hate and violence from the security staff.")

        assert "inappropriate" in result.flags
        assert result.score == 50

    def test_excessive_caps(self):
        result = check_content("THIS WAS THE BEST CONCERT EVER, TRULY AMAZING")

        assert "excessive_caps" in result.flags
        assert result.score == 20

    def test_caps_ignored_for_short_text(self):
        result = check_content("WOW SO GOOD")

        assert "excessive_caps" not in result.flags

    def test_two_links_are_fine(self):
        result = check_content("Photos at https://a.example.com and https://b.example.com")

        assert "excessive_links" not in result.flags

    def test_more_than_two_links(self):
        content = "See http://a.example http://b.example http://c.example for more"
        result = check_content(content)

        assert "excessive_links" in result.flags
        assert result.score == 30

    def test_too_short(self):
        result = check_content("Meh.")

        assert "too_short" in result.flags
        assert result.score == 15

    def test_repeated_characters(self):
        result = check_content("The encore was sooooo good, loved every minute.")

        assert "repetitive" in result.flags
        assert result.score == 10

    def test_score_is_capped(self):
        content = (
            "HATE VIOLENCE ABUSE HARASSMENT OFFENSIVE EXPLICIT! "
            "BUY NOW CLICK HERE http://a.x http://b.x http://c.x !!!!!!"
        )

        assert get_moderation_score(content) == MAX_SCORE


class TestInitialStatus:
    """Status assigned to new or edited reviews."""

    def test_clean_review_is_approved(self):
        status = get_initial_status("Lovely venue, great music and friendly people.")

        assert status == ReviewStatus.APPROVED
        assert should_auto_approve("Lovely venue, great music and friendly people.")

    def test_low_score_with_spam_flag_is_pending(self):
        """Spam is never auto-approved, even with a low score."""
        status = get_initial_status("Nice evening. Click here for the after party.")

        assert status == ReviewStatus.PENDING

    def test_medium_score_is_pending(self):
        status = get_initial_status("THE BAND PLAYED FOR HOURS AND HOURS!!!!!!")

        assert get_moderation_score("THE BAND PLAYED FOR HOURS AND HOURS!!!!!!") == 30
        assert status == ReviewStatus.PENDING

    def test_high_score_is_flagged(self):
        status = get_initial_status("Nothing but hate, violence and abuse all night long.")

        assert status == ReviewStatus.FLAGGED
