"""
Local Fallback Responses

When the remote analysis service is rate-limited or unavailable the
conversation must still move on. This module produces a plausible reply
from topic-keyed templates and scores the answer with a simple heuristic:

- Base score for any answer
- Bonus for longer answers
- Bonus per required word used (capped)

Selection is random, but all randomness comes from the rng argument so
tests can seed it.
"""

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from conversation_practice.schemas import FeedbackResponse, WordUsage


@dataclass(frozen=True)
class FallbackScoring:
    """Heuristic scoring weights."""
    base: int = 70
    long_answer_chars: int = 100
    long_answer_bonus: int = 10
    very_long_answer_chars: int = 200
    very_long_answer_bonus: int = 5
    per_word_bonus: int = 5
    max_word_bonus: int = 15
    max_score: int = 100


DEFAULT_SCORING = FallbackScoring()


TOPIC_TEMPLATES: Dict[str, Dict[str, List[str]]] = {
    'innovation': {
        'phrases': [
            "That's an interesting perspective on technology innovation!",
            "I appreciate your thoughts on tech development.",
            "Your ideas about innovation are quite thought-provoking.",
            "That's a fascinating take on technological advancement!",
        ],
        'questions': [
            "What specific technologies do you think will have the biggest impact in the next decade?",
            "How do you think Israeli innovations have changed everyday life?",
            "Can you think of any technological challenges we still need to solve?",
            "Do you believe AI will fundamentally change how we approach innovation?",
        ],
        'feedback': [
            "Good use of technical vocabulary! Try expanding your answer with more details.",
            "You're expressing your ideas well. Try using more complex sentence structures.",
            "Nice job! Try incorporating more specific examples in your responses.",
            "Well articulated! Consider using more transition words to connect your ideas.",
        ],
    },
    'economy': {
        'phrases': [
            "That's an insightful analysis of economic factors!",
            "Your thoughts on business development are valuable.",
            "I appreciate your perspective on economic growth.",
            "That's a nuanced view of entrepreneurship!",
        ],
        'questions': [
            "What do you think makes Israel's economy unique compared to other countries?",
            "How important do you think startups are to a country's economic growth?",
            "What economic challenges do you think Israel will face in the coming years?",
            "Do you believe digital currency will transform how we think about money?",
        ],
        'feedback': [
            "Good use of economic terminology! Try expanding your ideas with examples.",
            "You're expressing complex ideas well. Consider using more comparative language.",
            "Nice explanation! Try incorporating more financial vocabulary in your responses.",
            "Well structured! Try using more cause-and-effect language in your analysis.",
        ],
    },
    'diplomacy': {
        'phrases': [
            "That's a thoughtful analysis of international relations!",
            "Your perspective on diplomacy is quite interesting.",
            "I appreciate your nuanced view on foreign policy.",
            "That's a compelling point about diplomatic strategies!",
        ],
        'questions': [
            "How do you think Israel's diplomatic relationships have evolved over time?",
            "What role do you think technology plays in modern diplomacy?",
            "Which countries do you think Israel has the strongest relationships with?",
            "How important is cultural exchange in building international relationships?",
        ],
        'feedback': [
            "Good use of diplomatic terminology! Try developing your ideas with specific examples.",
            "You're expressing complex ideas clearly. Consider exploring multiple perspectives.",
            "Nice analysis! Try using more formal language when discussing international relations.",
            "Well articulated! Consider the historical context in your diplomatic analysis.",
        ],
    },
    'default': {
        'phrases': [
            "That's an interesting perspective!",
            "I appreciate your thoughtful response.",
            "You've made some good points there.",
            "That's a fascinating take on the topic!",
        ],
        'questions': [
            "Could you elaborate more on your thoughts about this topic?",
            "What aspects of this subject interest you the most?",
            "How do you think this topic relates to everyday life?",
            "Do you have any personal experiences related to this topic?",
        ],
        'feedback': [
            "Good effort! Try expanding your vocabulary with more topic-specific terms.",
            "You're expressing your ideas well. Try using more complex sentence structures.",
            "Nice job! Try incorporating more specific examples in your responses.",
            "Well done! Consider organizing your thoughts with transition words.",
        ],
    },
}

# First matching keyword group wins
CONTEXT_REMARKS = [
    (('future', 'next', 'coming'), "Your thoughts about future developments are interesting! "),
    (('problem', 'challenge', 'difficult'), "You've highlighted some important challenges. "),
    (('benefit', 'advantage', 'positive'), "You've noted some significant benefits. "),
]


def select_topic_key(topic_name: str) -> str:
    lower = (topic_name or "").lower()
    for key in TOPIC_TEMPLATES:
        if key != 'default' and key in lower:
            return key
    return 'default'


def context_remark(transcript: str) -> str:
    lower = (transcript or "").lower()
    for keywords, remark in CONTEXT_REMARKS:
        if any(keyword in lower for keyword in keywords):
            return remark
    return ""


def find_used_words(transcript: str, required_words: Sequence[str]) -> List[WordUsage]:
    """Mark each required word as used if it appears (case-insensitive substring)."""
    lower = (transcript or "").lower()
    usages = []
    for word in required_words:
        used = bool(word) and word.lower() in lower
        usages.append(WordUsage(
            word=word,
            used=used,
            context=f'Found "{word}" in your response' if used else None,
        ))
    return usages


def heuristic_score(
    transcript: str,
    used_word_count: int,
    scoring: FallbackScoring = DEFAULT_SCORING,
) -> int:
    """
    Score an answer without the remote service.

    Args:
        transcript: The human's answer
        used_word_count: How many required words the answer contains
        scoring: Weights to apply

    Returns:
        Score between scoring.base and scoring.max_score
    """
    length = len(transcript or "")
    score = scoring.base
    if length > scoring.long_answer_chars:
        score += scoring.long_answer_bonus
    if length > scoring.very_long_answer_chars:
        score += scoring.very_long_answer_bonus
    if used_word_count > 0:
        score += min(scoring.max_word_bonus, used_word_count * scoring.per_word_bonus)
    return min(scoring.max_score, score)


def generate_fallback_response(
    transcript: str,
    topic_name: str,
    required_words: Sequence[str],
    rng: Optional[random.Random] = None,
    scoring: FallbackScoring = DEFAULT_SCORING,
) -> FeedbackResponse:
    """
    Build a FeedbackResponse locally.

    Args:
        transcript: The human's answer
        topic_name: Topic slug used to pick the template bucket
        required_words: Words the learner is expected to use
        rng: Random source for template selection (seed it for determinism)
        scoring: Heuristic scoring weights

    Returns:
        FeedbackResponse with is_fallback=True
    """
    rng = rng or random.Random()
    templates = TOPIC_TEMPLATES[select_topic_key(topic_name)]

    phrase = rng.choice(templates['phrases'])
    question = rng.choice(templates['questions'])
    feedback = rng.choice(templates['feedback'])

    used_words = find_used_words(transcript, required_words)
    praised = " ".join(f'Great use of "{w.word}"!' for w in used_words if w.used)
    if praised:
        feedback = f"{feedback} {praised}"

    used_count = sum(1 for w in used_words if w.used)

    return FeedbackResponse(
        text=context_remark(transcript) + phrase,
        feedback=feedback,
        used_words=used_words,
        next_question=question,
        score=heuristic_score(transcript, used_count, scoring),
        is_fallback=True,
    )
