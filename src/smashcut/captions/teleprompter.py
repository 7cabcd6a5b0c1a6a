"""Teleprompter pacing: per-word cues for a script read at a steady rate."""

from __future__ import annotations

from smashcut.core.models import CaptionCue

WORDS_PER_MINUTE = 130.0


def estimate_cues(
    text: str, words_per_minute: float = WORDS_PER_MINUTE, offset: float = 0.0
) -> list[CaptionCue]:
    """One cue per whitespace-separated word, each lasting 60 / wpm seconds.

    Args:
        text: Section text as shown on the teleprompter.
        words_per_minute: Scroll speed.
        offset: Seconds into the recording at which the first word appears.
    """
    if words_per_minute <= 0:
        raise ValueError("words_per_minute must be positive")

    seconds_per_word = 60.0 / words_per_minute
    cues = []
    for i, word in enumerate(text.split()):
        start = offset + i * seconds_per_word
        cues.append(CaptionCue(text=word, start=start, end=start + seconds_per_word))
    return cues
