"""
Echo Filter

The microphone often picks up the machine's own voice from the speakers.
These heuristics compare a fresh transcript with the last machine line so
such self-echo can be dropped before it is analyzed as a human answer.
"""

import re
from typing import List

ECHO_SIMILARITY = 0.9
DEFAULT_ECHO_THRESHOLD = 0.7
PREFIX_WINDOW = 6
MIN_PREFIX_MATCHES = 3
MIN_TOKEN_LENGTH = 4  # tokens of 3 characters or fewer are ignored

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def _tokens(text: str) -> List[str]:
    cleaned = _NON_ALNUM.sub("", (text or "").lower())
    return [word for word in cleaned.split() if len(word) >= MIN_TOKEN_LENGTH]


def text_similarity(transcript: str, machine_line: str) -> float:
    """
    Score how much a transcript looks like a repeat of the machine line.

    Args:
        transcript: Newly recognized text
        machine_line: Most recent line the machine spoke

    Returns:
        0.9 if the opening words line up, otherwise the share of transcript
        tokens that also appear in the machine line (0.0 - 1.0)
    """
    words1 = _tokens(transcript)
    words2 = _tokens(machine_line)
    if not words1 or not words2:
        return 0.0

    check_length = min(PREFIX_WINDOW, len(words1), len(words2))
    starting_matches = sum(1 for i in range(check_length) if words1[i] == words2[i])
    if starting_matches >= MIN_PREFIX_MATCHES or starting_matches / check_length >= 0.5:
        return ECHO_SIMILARITY

    machine_words = set(words2)
    shared = sum(1 for word in words1 if word in machine_words)
    return shared / len(words1)


def is_echo(transcript: str, machine_line: str, threshold: float = DEFAULT_ECHO_THRESHOLD) -> bool:
    """True when the transcript should be discarded as self-echo."""
    return text_similarity(transcript, machine_line) > threshold
