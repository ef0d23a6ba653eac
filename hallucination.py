"""Filter for speech-to-text artifacts produced from near-silent audio.

Local STT engines run on spurious triggers and reliably hallucinate a small
set of stock phrases.  Anything flagged here is never pasted.
"""

from __future__ import annotations

import re

MIN_MEANINGFUL_LENGTH = 4

HALLUCINATION_PATTERNS = [
    re.compile(r"^\[.*\]$"),  # [BLANK_AUDIO], [Music], [Applause]
    re.compile(r"^\(.*\)$"),  # (music), (silence)
    re.compile(r"^thank(s| you)", re.IGNORECASE),
    re.compile(r"^please subscribe", re.IGNORECASE),
    re.compile(r"^like and subscribe", re.IGNORECASE),
    re.compile(r"^thanks for watching", re.IGNORECASE),
    re.compile(r"^the end\.?$", re.IGNORECASE),
    re.compile(r"^subtitle", re.IGNORECASE),
    re.compile(r"^copyright", re.IGNORECASE),
    re.compile(r"^you$", re.IGNORECASE),
    re.compile(r"^\.+$"),
]


def is_hallucination(text: str) -> bool:
    stripped = (text or "").strip()
    if not stripped:
        return True
    if len(stripped) < MIN_MEANINGFUL_LENGTH:
        return True
    return any(pattern.search(stripped) for pattern in HALLUCINATION_PATTERNS)
