"""Plain-text helpers for article bodies and AI prompts."""

import re

from bs4 import BeautifulSoup

WORDS_PER_MINUTE = 220

_WS_RE = re.compile(r"\s+")


def strip_html(s: str = "") -> str:
    """Visible text of an HTML fragment, with entities decoded."""
    s = str(s or "")
    if not s.strip():
        return ""
    return BeautifulSoup(s, "lxml").get_text(" ", strip=True)


def compress(s: str = "") -> str:
    """Collapse runs of whitespace and trim."""
    return _WS_RE.sub(" ", str(s or "")).strip()


def truncate(s: str, limit: int) -> str:
    """Cut ``s`` to at most ``limit`` characters, marking the cut with an ellipsis."""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


def word_count(s: str = "") -> int:
    return len(str(s or "").split())


def reading_minutes(html_or_text: str = "") -> int:
    """Estimated reading time at 220 wpm, never below one minute."""
    words = word_count(strip_html(html_or_text))
    return max(1, round(words / WORDS_PER_MINUTE))
