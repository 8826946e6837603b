"""
Unit Tests for Topic Helpers
"""

import pytest

from conversation_practice.topic_helpers import (
    create_fallback_post,
    extract_important_words,
    first_question_for,
    format_topic_name,
    generate_topic_words,
    highlight_required_words,
)


class TestTopicHelpers:
    """Test suite for topic-keyed helpers."""

    def test_format_topic_name(self):
        assert format_topic_name("innovation-and-technology") == "Innovation And Technology"
        assert format_topic_name("society") == "Society"

    @pytest.mark.parametrize("topic,question", [
        ("innovation-and-technology", "What Israeli technological innovations are you familiar with?"),
        ("diplomacy-and-international-relations",
         "What do you think about Israel's diplomatic relations with other countries?"),
        ("economy-and-entrepreneurship", "What interests you about Israel's economy or startup ecosystem?"),
        ("iron-swords-war", "What are your thoughts on how countries should protect their citizens?"),
        ("environment-and-sustainability",
         "What do you think about Israel's focus on renewable energy to protect the environment?"),
    ])
    def test_first_question_for_known_topics(self, topic, question):
        assert first_question_for(topic) == question

    def test_first_question_default(self):
        assert first_question_for("culinary-arts") == "What aspects of Culinary Arts interest you the most?"

    def test_first_match_wins(self):
        """'diplomacy' is checked before 'economy'."""
        assert "diplomatic" in first_question_for("economy-and-diplomacy")

    def test_generate_topic_words(self):
        assert generate_topic_words("innovation-and-technology") == [
            "technology", "startup", "innovation", "research", "development",
        ]
        assert generate_topic_words("unknown") == ["culture", "heritage", "innovation", "community", "tradition"]

    def test_extract_important_words(self):
        post = "💡 Startups, startups everywhere! Research drives startups and research funding. The end."

        words = extract_important_words(post, limit=3)

        assert words == ["startups", "research", "everywhere"]

    def test_extract_skips_stop_words_and_short_words(self):
        assert extract_important_words("the and with from cat dog") == []

    def test_fallback_post_mentions_topic(self):
        post = create_fallback_post("culinary-arts")

        assert "Culinary Arts represents an important aspect" in post
        assert "innovation" in create_fallback_post("innovation-and-technology")

    def test_highlight_whole_words_only(self):
        text = "Startup culture: every startup needs startups."

        highlighted = highlight_required_words(text, ["startup"])

        assert highlighted == "**Startup** culture: every **startup** needs startups."

    def test_highlight_empty(self):
        assert highlight_required_words("", ["word"]) == ""
        assert highlight_required_words("Nothing here", []) == "Nothing here"
