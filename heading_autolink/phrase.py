from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

_EXTRA_PHRASE_CHARS = frozenset("_'’-")


@dataclass(frozen=True)
class Phrase:
    query: str
    start_offset: int  # index into the scanned text


def is_phrase_char(ch: str) -> bool:
    return ch.isalpha() or ch.isdigit() or ch in _EXTRA_PHRASE_CHARS


def tail_window(text: str, max_chars: int) -> Tuple[int, str]:
    """Return (offset, segment) for the last `max_chars` characters of `text`."""
    start = max(0, len(text) - max(0, max_chars))
    return start, text[start:]


def extract_phrase(text: str, max_words: int) -> Phrase | None:
    """Find the run of words that ends closest to the end of `text`.

    Words are joined across whitespace only while fewer than `max_words`
    (at least 1) have been collected; any other character ends the phrase.
    """
    if not text:
        return None

    end = len(text) - 1
    while end >= 0 and not is_phrase_char(text[end]):
        end -= 1
    if end < 0:
        return None

    word_cap = max(1, max_words)
    start = end
    words = 1
    while start > 0:
        prev = text[start - 1]
        if is_phrase_char(prev):
            start -= 1
            continue
        if prev.isspace():
            scan = start - 1
            while scan >= 0 and text[scan].isspace():
                scan -= 1
            if scan >= 0 and is_phrase_char(text[scan]) and words < word_cap:
                words += 1
                start = scan
                while start > 0 and is_phrase_char(text[start - 1]):
                    start -= 1
                continue
        break

    query = text[start:end + 1].strip()
    if not query:
        return None
    return Phrase(query=query, start_offset=start)
