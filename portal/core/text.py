from __future__ import annotations

import re

from portal.core.numbers import to_ascii

_REPEATED_WORD = re.compile(r"\b(\w{3,})(\s+\1\b)+", re.IGNORECASE)
_PHRASE_ECHO = re.compile(r"\b((?:\w+\s+){1,7}\w+)(?:\s+\1){1,}\b", re.IGNORECASE)
_REPEATED_PUNCT = re.compile(r"([,.!?¿¡])\1+")
_SPACE_RUNS = re.compile(r"[ \t]+")


def sanitize(text: str) -> str:
    """Collapse the echoes small local models tend to produce."""

    cleaned = _REPEATED_WORD.sub(r"\1", text)
    cleaned = _PHRASE_ECHO.sub(r"\1", cleaned)
    cleaned = _REPEATED_PUNCT.sub(r"\1", cleaned)
    cleaned = _SPACE_RUNS.sub(" ", cleaned)
    return cleaned.strip()


def normalise_statement_text(raw: str) -> str:
    text = raw.replace("\u00a0", " ").replace("\r", "")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{2,}", "\n", text)
    return text.strip()


def prepare_statement_text(raw: str) -> str:
    """Whitespace-normalised, diacritic-free text for the profit rules."""

    return to_ascii(normalise_statement_text(raw))
