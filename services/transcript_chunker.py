# services/transcript_chunker.py
from __future__ import annotations

import re

_SENTENCE_END = re.compile(r"[.!?]+")


def split_sentences(text: str) -> list[str]:
    """Sentences with their terminal punctuation kept. Empty pieces dropped."""
    sentences = []
    pos = 0
    for m in _SENTENCE_END.finditer(text):
        piece = text[pos:m.end()].strip()
        if piece:
            sentences.append(piece)
        pos = m.end()
    tail = text[pos:].strip()
    if tail:
        sentences.append(tail)
    return sentences


def split_transcript(text: str, max_chars: int = 15_000) -> list[str]:
    """
    Packs whole sentences into segments of at most max_chars where possible.
    A sentence longer than max_chars becomes its own segment.

    If packing leaves a single oversized segment, it is cut at the
    midpoint so callers always get at least two.
    """
    segments: list[str] = []
    current = ""

    for sentence in split_sentences(text):
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) > max_chars and current:
            segments.append(current)
            current = sentence
        else:
            current = candidate

    if current:
        segments.append(current)

    if len(segments) == 1 and len(segments[0]) > max_chars:
        only = segments[0]
        mid = len(only) // 2
        segments = [only[:mid], only[mid:]]

    return segments
