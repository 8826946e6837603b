"""
Unit Tests for Echo Filter

Tests detection of the machine's own speech picked up by the microphone.
"""

import pytest

from conversation_practice.echo_filter import is_echo, text_similarity

DIPLOMACY_QUESTION = "What do you think about Israel's diplomatic relations with other countries?"


class TestTextSimilarity:
    """Test suite for text_similarity."""

    def test_verbatim_repeat_is_echo(self):
        """A transcript identical to the machine line scores 0.9 and is dropped."""
        assert text_similarity(DIPLOMACY_QUESTION, DIPLOMACY_QUESTION) >= 0.9
        assert is_echo(DIPLOMACY_QUESTION, DIPLOMACY_QUESTION)

    def test_case_and_punctuation_ignored(self):
        similarity = text_similarity(
            "what do you THINK about israels diplomatic relations",
            DIPLOMACY_QUESTION,
        )
        assert similarity == 0.9

    def test_matching_opening_words(self):
        """Three positional matches at the start are enough."""
        similarity = text_similarity(
            "What think about something entirely different here",
            "What think about Israel's economy",
        )
        assert similarity == 0.9

    def test_unrelated_answer_is_not_echo(self):
        transcript = "I think AI and cybersecurity will change the future"
        machine_line = "What Israeli technological innovations are you familiar with?"

        assert text_similarity(transcript, machine_line) == 0.0
        assert not is_echo(transcript, machine_line)

    def test_shared_word_ratio(self):
        """Without a matching opening, the share of shared tokens is returned."""
        similarity = text_similarity(
            "Honestly startups matter, technology grows",
            "Technology and startups shape Israel",
        )
        # honestly, startups, matter, technology, grows -> 2 of 5 shared
        assert similarity == pytest.approx(0.4)
        assert not is_echo(
            "Honestly startups matter, technology grows",
            "Technology and startups shape Israel",
        )

    def test_short_tokens_ignored(self):
        """Words of three characters or fewer never count."""
        assert text_similarity("yes and you", "yes and you") == 0.0

    @pytest.mark.parametrize("transcript,machine_line", [
        ("", DIPLOMACY_QUESTION),
        (DIPLOMACY_QUESTION, ""),
        (None, DIPLOMACY_QUESTION),
    ])
    def test_empty_inputs(self, transcript, machine_line):
        assert text_similarity(transcript, machine_line) == 0.0
        assert not is_echo(transcript, machine_line)

    def test_custom_threshold(self):
        transcript = "Honestly startups matter, technology grows"
        machine_line = "Technology and startups shape Israel"
        assert is_echo(transcript, machine_line, threshold=0.3)
