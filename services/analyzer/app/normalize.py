"""Clean model output into plain text and build local fallback summaries."""

import re
from typing import List

from shared.utils.text import compress, strip_html

MAX_BULLETS = 8
BULLET = "• "

_STRONG_RE = re.compile(r"(\*\*|__)(.*?)\1")
_EM_RE = re.compile(r"(\*|_)(.*?)\1")
_DASH_BULLET_RE = re.compile(r"^\s*[*\-]\s+", re.M)
_DOT_BULLET_RE = re.compile(r"^\s*•\s+", re.M)
_NUMBERED_RE = re.compile(r"^\s*\d+[.)\]]\s+", re.M)
_ANY_BULLET_RE = re.compile(r"^\s*[•*\-]\s+", re.M)
_INLINE_STAR_RE = re.compile(r"\s\*\s")
_LISTY_RE = re.compile(r"^\s*[•*\-\d].*$", re.M)
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([.,;:!?])")
_SENTENCE_END_RE = re.compile(r"[.!?…]$")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_LEADING_NUMBER_RE = re.compile(r"^\d+[).\s-]*")


def remove_inline_emphasis(s: str = "") -> str:
    return _EM_RE.sub(r"\2", _STRONG_RE.sub(r"\2", s))


def normalize_outline(text: str) -> str:
    """Up to eight distinct ``• `` bullets, one per line."""
    s = str(text or "").replace("\r\n", "\n").strip()
    s = _DASH_BULLET_RE.sub(BULLET, s)
    s = _DOT_BULLET_RE.sub(BULLET, s)
    s = _NUMBERED_RE.sub(BULLET, s)
    s = _INLINE_STAR_RE.sub("\n" + BULLET, s)
    s = remove_inline_emphasis(s)

    lines: List[str] = []
    seen = set()
    for line in s.split("\n"):
        line = line.strip()
        if not line:
            continue
        if not line.startswith(BULLET):
            line = BULLET + line
        if len(line) > 2:
            line = BULLET + line[2].upper() + line[3:]
        key = line.lower()
        if key in seen:
            continue
        seen.add(key)
        lines.append(line)
        if len(lines) >= MAX_BULLETS:
            break
    return "\n".join(lines)


def normalize_paragraph(text: str) -> str:
    """Flatten list-like text into one paragraph ending in punctuation."""
    s = str(text or "").replace("\r\n", "\n").strip()
    s = _ANY_BULLET_RE.sub("", s)
    s = _INLINE_STAR_RE.sub(". ", s)
    s = re.sub(r"\n+", " ", s)
    s = remove_inline_emphasis(s)
    s = compress(_SPACE_BEFORE_PUNCT_RE.sub(r"\1", s))
    if not s:
        return ""
    if not _SENTENCE_END_RE.search(s):
        s += "."
    return s


def normalize_output(text: str, mode: str) -> str:
    raw = (text or "").strip()
    if not raw:
        return ""
    if mode == "outline":
        return normalize_outline(raw)

    looks_listy = bool(_LISTY_RE.search(raw)) or " * " in raw
    cleaned = normalize_paragraph(raw) if looks_listy else remove_inline_emphasis(raw)
    return compress(cleaned)


def split_sentences(text: str) -> List[str]:
    clean = compress(strip_html(text))
    if not clean:
        return []
    return _SENTENCE_SPLIT_RE.split(clean)


def fallback_summary(text: str, mode: str = "tldr") -> str:
    """Extractive summary used when no provider answers.

    tldr keeps the first three sentences; detailed keeps the first, second,
    middle and last two; outline turns the first eight into bullets.
    """
    sentences = split_sentences(text)
    if not sentences:
        return ""

    if mode == "outline":
        return "\n".join(BULLET + _ANY_BULLET_RE.sub("", s).strip() for s in sentences[:MAX_BULLETS])

    if mode == "detailed":
        n = len(sentences)
        picked = sorted({i for i in (0, 1, n // 2, n - 2, n - 1) if 0 <= i < n})
        return normalize_paragraph(" ".join(sentences[i] for i in picked))

    return normalize_paragraph(" ".join(sentences[:3]))


def split_topic_lines(text: str, limit: int) -> List[str]:
    """One phrase per line, numbering and bullets removed."""
    out = []
    for line in (text or "").split("\n"):
        line = _LEADING_NUMBER_RE.sub("", _ANY_BULLET_RE.sub("", line)).strip()
        if line:
            out.append(remove_inline_emphasis(line))
        if len(out) >= limit:
            break
    return out
