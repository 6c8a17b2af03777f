"""Bulk word-list parsing for the admin import.

Each non-empty line is ``word <sep> meaning`` where the separator is a
hyphen, en dash, em dash (optionally surrounded by spaces) or a tab.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Spaced dashes win over bare ones so hyphenated words such as "well-known" survive
_SEPARATORS = (re.compile(r"\s+[-–—]\s+"), re.compile(r"\t+"), re.compile(r"\s*[-–—]\s*"))

IMPORT_BATCH_SIZE = 100


@dataclass(frozen=True)
class ParsedWord:
    word: str
    meaning: str


@dataclass
class ParseResult:
    words: list[ParsedWord]
    errors: list[str]


def parse_word_line(line: str) -> ParsedWord | None:
    """Parse one line; None if it has no separator or an empty side."""
    line = line.strip()
    for separator in _SEPARATORS:
        parts = separator.split(line, maxsplit=1)
        if len(parts) == 2:
            break
    else:
        return None
    word, meaning = parts[0].strip(), parts[1].strip()
    if not word or not meaning:
        return None
    return ParsedWord(word=word, meaning=meaning)


def parse_word_list(text: str) -> ParseResult:
    """Parse a pasted word list, collecting unparseable lines as errors."""
    words: list[ParsedWord] = []
    errors: list[str] = []
    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        parsed = parse_word_line(line)
        if parsed is None:
            errors.append(f"Line {number}: expected 'word - meaning', got {line.strip()!r}")
        else:
            words.append(parsed)
    return ParseResult(words=words, errors=errors)


def batched(items: list, size: int = IMPORT_BATCH_SIZE) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]
