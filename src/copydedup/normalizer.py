"""Canonicalize copy text before shingling.

Boilerplate titles and call-to-action endings are stripped so that two posts
sharing the same body compare as equal. The output is a comparison key only
and is never shown back to users.
"""

from __future__ import annotations

import re
from typing import List, Pattern

# Applied once each, in order, to the start of the text.
TITLE_PATTERNS: List[Pattern[str]] = [
    re.compile(r"^[A-Z\s\-!?.,:]+(?=\s+[A-Z][a-z])"),
    re.compile(r"^(THE\s+)?MOST\s+POWERFUL\s+PRAYER[^\n]*", re.IGNORECASE),
    re.compile(r"^(PRAYER|BLESSING|MESSAGE|ANNOUNCEMENT)[^\n]*", re.IGNORECASE),
    re.compile(r"^DEAR\s+(GOD|LORD|JESUS|FATHER)[,:]?\s*", re.IGNORECASE),
]

# Re-scanned until nothing changes. Specific "... amen" calls come before the
# bare amen/hallelujah pattern so the whole call is removed, not just its tail.
ENDING_PATTERNS: List[Pattern[str]] = [
    re.compile(r"\btype\s+[\"']?amen[\"']?.*$", re.IGNORECASE),
    re.compile(r"\bsay\s+[\"']?amen[\"']?.*$", re.IGNORECASE),
    re.compile(r"\bput\s+(a\s+)?(strong\s+)?[\"']?amen[\"']?.*$", re.IGNORECASE),
    re.compile(r"\b(share|like|comment|subscribe|follow)\s+(this|if|and)\b.*$", re.IGNORECASE),
    re.compile(r"\bdon['’]t\s+forget\s+to\s+(send|share|like).*$", re.IGNORECASE),
    re.compile(r"\bif\s+you\s+(love|believe|agree|are\s+grateful).*$", re.IGNORECASE),
    re.compile(r"\bwatch\s+what\s+(he|god|the\s+lord)\s+will\s+do.*$", re.IGNORECASE),
    re.compile(r"\bto\s+shame\s+satan.*$", re.IGNORECASE),
    re.compile(r"\b(amen|hallelujah)\b\.?\s*$", re.IGNORECASE),
]

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")


def remove_title(text: str) -> str:
    result = text
    for pattern in TITLE_PATTERNS:
        result = pattern.sub("", result, count=1)
    return result.strip()


def remove_ending(text: str) -> str:
    result = text
    prev_length = -1
    while len(result) != prev_length:
        prev_length = len(result)
        for pattern in ENDING_PATTERNS:
            result = pattern.sub("", result, count=1).strip()
    return result


def normalize_text(text: str) -> str:
    """Strip title and endings, lower-case, drop punctuation, collapse spaces."""
    if not text:
        return ""
    processed = remove_ending(remove_title(text))
    processed = _PUNCT_RE.sub(" ", processed.lower())
    return _SPACE_RE.sub(" ", processed).strip()


__all__ = ["TITLE_PATTERNS", "ENDING_PATTERNS", "remove_title", "remove_ending", "normalize_text"]
