"""
Topic Helpers

Topic names arrive as URL slugs ("innovation-and-technology"). These helpers
format them for display and derive the topic-keyed content a conversation
needs when the backend has nothing better: opening question, vocabulary
and a stand-in post.
"""

import re
from collections import Counter
from typing import Iterable, List

STOP_WORDS = {
    'the', 'and', 'a', 'an', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have', 'has', 'had',
    'do', 'does', 'did', 'will', 'would', 'should', 'could', 'can', 'may',
    'might', 'must', 'about', 'you', 'your', 'i', 'me', 'my', 'we', 'our',
    'they', 'their', 'it', 'its', 'this', 'that', 'these', 'those',
    'from', 'as', 'if', 'then', 'than', 'so', 'what', 'when', 'where', 'why',
    'how', 'all', 'any', 'both', 'each', 'few', 'more', 'most', 'some',
    'such', 'no', 'nor', 'not', 'only', 'own', 'same', 'too', 'very',
}

_EMOJI = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\u2600-\u26FF\u2700-\u27BF]"
)
_PUNCTUATION = re.compile(r"[^\w\s]")

# Checked in order; the first keyword found in the topic wins
TOPIC_WORDS = [
    (('diplomacy',), ['diplomacy', 'peace', 'negotiation', 'agreement', 'international']),
    (('economy',), ['startup', 'innovation', 'entrepreneur', 'investment', 'technology']),
    (('innovation',), ['technology', 'startup', 'innovation', 'research', 'development']),
    (('history',), ['heritage', 'tradition', 'ancient', 'archaeological', 'civilization']),
    (('holocaust',), ['remembrance', 'survivor', 'memorial', 'testimony', 'resilience']),
    (('iron', 'sword'), ['security', 'defense', 'protection', 'resilience', 'strength']),
    (('society',), ['diversity', 'culture', 'community', 'tradition', 'integration']),
]
DEFAULT_TOPIC_WORDS = ['culture', 'heritage', 'innovation', 'community', 'tradition']

FIRST_QUESTIONS = [
    (('diplomacy',), "What do you think about Israel's diplomatic relations with other countries?"),
    (('economy',), "What interests you about Israel's economy or startup ecosystem?"),
    (('innovation',), "What Israeli technological innovations are you familiar with?"),
    (('history',), "What aspects of Israeli history do you find most interesting?"),
    (('holocaust',), "Why do you think it's important to remember historical events like the Holocaust?"),
    (('iron', 'sword'), "What are your thoughts on how countries should protect their citizens?"),
    (('environment',), "What do you think about Israel's focus on renewable energy to protect the environment?"),
    (('society',), "What do you find most interesting about the diversity of Israeli society?"),
]


def _match(topic_name: str, table):
    lower = (topic_name or "").lower()
    for keywords, value in table:
        if any(keyword in lower for keyword in keywords):
            return value
    return None


def format_topic_name(topic_name: str) -> str:
    """'innovation-and-technology' -> 'Innovation And Technology'"""
    return " ".join(word[:1].upper() + word[1:] for word in (topic_name or "").split("-"))


def first_question_for(topic_name: str) -> str:
    """Opening question for a topic."""
    question = _match(topic_name, FIRST_QUESTIONS)
    if question:
        return question
    return f"What aspects of {format_topic_name(topic_name)} interest you the most?"


def generate_topic_words(topic_name: str) -> List[str]:
    """Topic-specific vocabulary used when the post has no required words."""
    words = _match(topic_name, TOPIC_WORDS)
    return list(words) if words else list(DEFAULT_TOPIC_WORDS)


def extract_important_words(post_content: str, limit: int = 10) -> List[str]:
    """
    Pull the most frequent meaningful words out of post content.

    Args:
        post_content: Post text (may contain emoji)
        limit: Maximum number of words returned

    Returns:
        Words longer than 3 characters, stop words removed, most frequent
        first (ties keep first-seen order)
    """
    cleaned = _EMOJI.sub(" ", post_content or "")
    cleaned = _PUNCTUATION.sub(" ", cleaned).lower()
    words = [w for w in cleaned.split() if w not in STOP_WORDS and len(w) > 3]
    return [word for word, _ in Counter(words).most_common(limit)]


def create_fallback_post(topic_name: str) -> str:
    """Stand-in post content for topics whose post could not be loaded."""
    formatted = format_topic_name(topic_name)
    topic = topic_name or ""

    if 'society' in topic:
        return (
            "🌍 🕊️ 🏙️ 🎭\n\nIsraeli society celebrates diversity while honoring traditions. "
            "Our communities blend various cultural identities into a vibrant national character. "
            "The integration of multiple perspectives makes Israel unique.\n\n"
            "What aspects of Israeli society do you find most fascinating? "
            "Have you experienced the cultural diversity of Israel firsthand?"
        )
    if 'innovation' in topic:
        return (
            "💡 🔬 🚀 💻\n\nIsraeli innovation is changing the world! Research centers across the "
            "country develop solutions for global challenges. The future of technology is being "
            "shaped by Israeli minds working on everything from cybersecurity to medical "
            "breakthroughs.\n\nWhat Israeli innovation has impacted your life? Which area of "
            "technology do you think will see the next big Israeli breakthrough?"
        )
    if 'history' in topic:
        return (
            "🏛️ 📜 🕍 🏺\n\nIsrael's rich heritage spans thousands of years, connecting ancient "
            "traditions with modern life. Archaeological discoveries continue to reveal "
            "fascinating insights about our past. Each historic site tells a story of resilience "
            "and cultural preservation.\n\nWhat period of Israeli history interests you most? "
            "Have you visited any historical sites in Israel?"
        )
    return (
        f"🌟 🔍 🌐 ✨\n\n{formatted} represents an important aspect of Israel's development. "
        "Our community continues to explore new perspectives on this topic as we build toward "
        f"the future.\n\nWhat are your thoughts about {formatted} in Israel today? "
        "How do you see it evolving in the coming years?"
    )


def highlight_required_words(text: str, required_words: Iterable[str]) -> str:
    """Wrap whole-word, case-insensitive matches of required words in **...**."""
    if not text:
        return ""
    highlighted = text
    for word in required_words:
        if not word:
            continue
        pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
        highlighted = pattern.sub(lambda m: f"**{m.group(0)}**", highlighted)
    return highlighted
