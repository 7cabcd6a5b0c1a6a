"""Word-level cue grouping and subtitle serialization.

Cues are grouped greedily into chunks of about WORDS_PER_CHUNK words and
written as SubRip blocks:

    1
    00:00:00,000 --> 00:00:03,000
    Hello world this is a test
"""

from __future__ import annotations

import json
import math
from pathlib import Path

import pysubs2

from smashcut.core.models import CaptionCue, SubtitleChunk

WORDS_PER_CHUNK = 6


def _flush(buffer: list[CaptionCue]) -> SubtitleChunk:
    return SubtitleChunk(
        text=" ".join(cue.text for cue in buffer),
        start=buffer[0].start,
        end=buffer[-1].end,
    )


def group_into_chunks(
    cues: list[CaptionCue], words_per_chunk: int = WORDS_PER_CHUNK
) -> list[SubtitleChunk]:
    """Merge consecutive cues until their word count reaches ``words_per_chunk``.

    Leftover cues at the end form a final, possibly shorter chunk.
    """
    chunks: list[SubtitleChunk] = []
    buffer: list[CaptionCue] = []
    word_count = 0

    for cue in cues:
        buffer.append(cue)
        word_count += len(cue.text.split())
        if word_count >= words_per_chunk:
            chunks.append(_flush(buffer))
            buffer = []
            word_count = 0

    if buffer:
        chunks.append(_flush(buffer))
    return chunks


def format_srt_time(seconds: float) -> str:
    """Format seconds as an SRT timestamp (HH:MM:SS,mmm), rounded half-up to the millisecond."""
    total_ms = math.floor(seconds * 1000 + 0.5)
    ms = total_ms % 1000
    total_sec = total_ms // 1000
    sec = total_sec % 60
    minutes = (total_sec // 60) % 60
    hours = total_sec // 3600
    return f"{hours:02d}:{minutes:02d}:{sec:02d},{ms:03d}"


def format_srt(chunks: list[SubtitleChunk]) -> str:
    """Serialize chunks as SubRip text."""
    lines: list[str] = []
    for index, chunk in enumerate(chunks, 1):
        lines.append(str(index))
        lines.append(f"{format_srt_time(chunk.start)} --> {format_srt_time(chunk.end)}")
        lines.append(chunk.text)
        lines.append("")
    return "\n".join(lines)


def export_srt(cues: list[CaptionCue], words_per_chunk: int = WORDS_PER_CHUNK) -> str:
    """Group cues into chunks and serialize them as SubRip text."""
    if not cues:
        return ""
    return format_srt(group_into_chunks(cues, words_per_chunk))


def save_srt(
    cues: list[CaptionCue], path: Path, words_per_chunk: int = WORDS_PER_CHUNK
) -> Path:
    """Write the whole SubRip file for ``cues`` in one go."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_srt(cues, words_per_chunk), encoding="utf-8")
    return path


def save_chunks(chunks: list[SubtitleChunk], path: Path, fmt: str = "vtt") -> Path:
    """Save chunks in another subtitle format ("vtt", "ass", "srt") via pysubs2."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    subs = pysubs2.SSAFile()
    for chunk in chunks:
        subs.events.append(
            pysubs2.SSAEvent(
                start=pysubs2.make_time(s=chunk.start),
                end=pysubs2.make_time(s=chunk.end),
                text=chunk.text,
            )
        )
    subs.save(str(path), format_=fmt)
    return path


def load_cues(path: Path) -> list[CaptionCue]:
    """Load cues from a JSON list of {"text", "start", "end"} or a subtitle file.

    Subtitle files (SRT, VTT, ASS) become one cue per event.
    """
    path = Path(path)

    if path.suffix == ".json":
        records = json.loads(path.read_text(encoding="utf-8"))
        return [
            CaptionCue(text=str(r["text"]), start=float(r["start"]), end=float(r["end"]))
            for r in records
        ]

    subs = pysubs2.load(str(path))
    return [
        CaptionCue(text=event.plaintext, start=event.start / 1000.0, end=event.end / 1000.0)
        for event in subs.events
        if not event.is_comment
    ]


def save_cues(cues: list[CaptionCue], path: Path) -> Path:
    """Write cues as a JSON list readable by load_cues."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    records = [{"text": c.text, "start": c.start, "end": c.end} for c in cues]
    path.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
    return path
