"""Tests for teleprompter-paced cue estimation."""

import pytest

from smashcut.captions.teleprompter import estimate_cues


def test_one_cue_per_word():
    cues = estimate_cues("Hello   world\nagain", words_per_minute=60)
    assert [c.text for c in cues] == ["Hello", "world", "again"]
    assert [(c.start, c.end) for c in cues] == [(0.0, 1.0), (1.0, 2.0), (2.0, 3.0)]


def test_offset():
    cues = estimate_cues("one two", words_per_minute=120, offset=2.0)
    assert cues[0].start == 2.0
    assert cues[1].start == pytest.approx(2.5)


def test_default_pace():
    cues = estimate_cues("a b")
    assert cues[0].end == pytest.approx(60 / 130)


def test_empty_text():
    assert estimate_cues("   ") == []


def test_invalid_pace():
    with pytest.raises(ValueError):
        estimate_cues("hi", words_per_minute=0)
