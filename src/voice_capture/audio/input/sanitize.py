"""Transcript cleanup applied before a transcript is surfaced."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")


def _is_word_char(ch: str) -> bool:
    # Letters, digits, and combining marks (vowel signs in Devanagari etc.)
    return unicodedata.category(ch)[0] in ("L", "N", "M")


def _is_punct_or_symbol(ch: str) -> bool:
    return unicodedata.category(ch)[0] in ("P", "S")


def _collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _strip_edges(text: str) -> str:
    start, end = 0, len(text)
    while start < end and not _is_word_char(text[start]):
        start += 1
    while end > start and not _is_word_char(text[end - 1]):
        end -= 1
    return text[start:end]


def _collapse_punct_runs(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        if _is_punct_or_symbol(text[i]):
            j = i
            while j < len(text) and _is_punct_or_symbol(text[j]):
                j += 1
            out.append(" " if j - i >= 2 else text[i])
            i = j
        else:
            out.append(text[i])
            i += 1
    return "".join(out)


def sanitize_transcript(raw: str) -> str:
    """
    Clean a raw speech-to-text result; returns "" when nothing meaningful is left.

    - Collapses whitespace and trims.
    - Strips leading/trailing punctuation, symbols and spaces (Unicode-aware).
    - Collapses runs of 2+ punctuation/symbol characters into a single space.
    - Rejects a lone punctuation mark or anything shorter than 2 characters.

    sanitize_transcript(sanitize_transcript(x)) == sanitize_transcript(x).
    """
    if not raw:
        return ""

    text = _collapse_whitespace(raw)
    text = _strip_edges(text)
    text = _collapse_whitespace(_collapse_punct_runs(text))

    if len(text) == 1 and _is_punct_or_symbol(text):
        return ""
    if len(text) < 2:
        return ""
    return text
