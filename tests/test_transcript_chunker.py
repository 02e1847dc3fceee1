# tests/test_transcript_chunker.py
from __future__ import annotations

from services.transcript_chunker import split_sentences, split_transcript


def test_split_sentences_keeps_punctuation():
    assert split_sentences("Hello there. How are you?! Fine") == [
        "Hello there.",
        "How are you?!",
        "Fine",
    ]


def test_short_text_is_one_segment():
    assert split_transcript("One. Two. Three.", max_chars=100) == ["One. Two. Three."]


def test_segments_respect_budget_and_keep_order():
    sentences = [f"Sentence number {i} is here." for i in range(200)]
    text = " ".join(sentences)

    segments = split_transcript(text, max_chars=500)

    assert len(segments) > 1
    assert all(len(s) <= 500 for s in segments)
    assert " ".join(segments) == text


def test_single_oversized_sentence_splits_at_midpoint():
    text = "a" * 1000  # no terminal punctuation at all
    segments = split_transcript(text, max_chars=300)

    assert len(segments) == 2
    assert segments[0] + segments[1] == text
    assert len(segments[0]) == 500


def test_empty_text_gives_no_segments():
    assert split_transcript("   ", max_chars=100) == []
