"""
Text-driven box sizing.

Estimates a ``{width, height}`` for a node or container from its label and
description before any positioning happens.  The estimate splits the text
into a bold header (followed by technology badges) and a word-wrapped
description, then nudges the box toward a target aspect ratio.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass


@dataclass(frozen=True)
class SizeBounds:
    """Allowed ``[min, max]`` range for each dimension."""
    min_width: float
    min_height: float
    max_width: float
    max_height: float


NODE_BOUNDS = SizeBounds(120, 50, 350, 220)
CONTAINER_BOUNDS = SizeBounds(180, 100, 350, 220)

# Protocol / auth / cloud keywords rendered as badges next to the header.
# Meeting one of them ends the header.
TECHNICAL_TERMS = (
    "HTTP", "OAuth", "RBAC", "JWT", "AWS", "Lambda",
    "Kinesis", "SQS", "Kubernetes", "Prometheus", "Jaeger",
)

HEADER_CHAR_WIDTH = 9
HEADER_LINE_HEIGHT = 28
HEADER_PADDING = 32
TITLE_AREA_SHARE = 0.7
BADGE_WIDTH = 50

DESC_CHAR_WIDTH = 8
DESC_LINE_HEIGHT = 18
DESC_PADDING = 24
DESC_SIDE_PADDING = 40

RATIO_DEFAULT = 1.5
RATIO_MANY_BADGES = 2.5


@dataclass(frozen=True)
class SizeEstimate:
    width: float
    height: float
    header_height: float
    header_lines: int
    description_lines: int
    badges: int


def split_header(text: str) -> tuple[list[str], list[str]]:
    """Split words into (header, description).

    Everything from the first technical term or parenthesis onwards is
    description.  Parenthesis characters themselves are dropped.
    """
    header: list[str] = []
    description: list[str] = []
    in_header = True
    for word in text.split():
        if in_header and ("(" in word or ")" in word or _has_term(word)):
            in_header = False
        clean = word.strip("()")
        if not clean:
            continue
        (header if in_header else description).append(clean)
    return header, description


def count_badges(text: str) -> int:
    """Number of distinct technical terms mentioned anywhere in *text*."""
    return sum(1 for term in TECHNICAL_TERMS if term in text)


def wrap_words(words: list[str], max_chars: int) -> list[str]:
    """Greedy word wrap; words longer than a line are hard-split."""
    max_chars = max(1, max_chars)
    lines: list[str] = []
    current = ""
    for word in words:
        while len(word) > max_chars:
            if current:
                lines.append(current)
                current = ""
            lines.append(word[:max_chars])
            word = word[max_chars:]
        if not word:
            continue
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def estimate_size(label: str, description: str = "", bounds: SizeBounds = NODE_BOUNDS) -> SizeEstimate:
    """Estimate a box size from its text, clamped into *bounds*.

    Deterministic: the same text and bounds always give the same size.
    """
    text = f"{label or ''} {description or ''}".strip()
    text = re.sub(r"\s+", " ", text)
    if not text:
        return SizeEstimate(
            width=bounds.min_width,
            height=bounds.min_height,
            header_height=min(bounds.min_height, HEADER_LINE_HEIGHT + HEADER_PADDING / 2),
            header_lines=0,
            description_lines=0,
            badges=0,
        )

    header_words, desc_words = split_header(text)
    header_text = " ".join(header_words)
    badges = count_badges(text)

    # Header: one bold title area plus a fixed-width slot per badge
    title_chars_per_line = max(10, math.floor(bounds.max_width * TITLE_AREA_SHARE / HEADER_CHAR_WIDTH))
    header_lines = max(1, math.ceil(len(header_text) / title_chars_per_line))
    header_chars = min(len(header_text), title_chars_per_line)
    header_width = header_chars * HEADER_CHAR_WIDTH + badges * BADGE_WIDTH + HEADER_PADDING

    # Description: greedy wrap at the widest line the box may have
    max_desc_chars = math.floor((bounds.max_width - DESC_SIDE_PADDING) / DESC_CHAR_WIDTH)
    desc_lines = wrap_words(desc_words, max_desc_chars)
    desc_width = max((len(line) for line in desc_lines), default=0) * DESC_CHAR_WIDTH + DESC_PADDING

    width = max(header_width, desc_width)
    height = HEADER_LINE_HEIGHT * header_lines + DESC_LINE_HEIGHT * len(desc_lines) + HEADER_PADDING
    if desc_lines:
        height += DESC_PADDING

    width, height = _clamp(width, height, bounds)

    # Grow whichever dimension falls short of the target ratio
    target = RATIO_MANY_BADGES if badges > 2 else RATIO_DEFAULT
    if width / height < target:
        width = height * target
    elif width / height > target:
        height = width / target
    width, height = _clamp(width, height, bounds)

    header_height = HEADER_LINE_HEIGHT * header_lines + HEADER_PADDING / 2
    return SizeEstimate(
        width=float(width),
        height=float(height),
        header_height=float(min(header_height, height)),
        header_lines=header_lines,
        description_lines=len(desc_lines),
        badges=badges,
    )


def _has_term(word: str) -> bool:
    return any(term in word for term in TECHNICAL_TERMS)


def _clamp(width: float, height: float, bounds: SizeBounds) -> tuple[float, float]:
    width = max(bounds.min_width, min(bounds.max_width, width))
    height = max(bounds.min_height, min(bounds.max_height, height))
    return width, height
