"""
Hierarchical text-region entities: word -> line -> paragraph.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from relayout.core.geometry import Position, union

# sRGB triple, each channel in [0, 1].
RGB = Tuple[float, float, float]

# CSS-like font weights.
REGULAR_WEIGHT = 400
SEMIBOLD_WEIGHT = 600
BOLD_WEIGHT = 700


@dataclass(frozen=True)
class Style:
    """
    Visual style of a text fragment.

    Word width is deliberately absent since it varies too much between
    languages to be worth preserving.
    """
    text_color: RGB
    height: int
    # Number of fragments folded into this style; used to weight color blends.
    weight: int = 1
    font_weight: int = REGULAR_WEIGHT


def resolve_font_weight(font_weight: int, bold: bool) -> int:
    """OCR reports 0 when no numeric weight is known; fall back to the bold flag."""
    if font_weight:
        return int(font_weight)
    return BOLD_WEIGHT if bold else REGULAR_WEIGHT


@dataclass(frozen=True)
class WordSegment:
    text: str
    position: Position
    font_size: Optional[float] = None
    style: Optional[Style] = None

    def with_text(self, text: str) -> "WordSegment":
        return replace(self, text=text)


@dataclass
class LineSegment:
    words: List[WordSegment] = field(default_factory=list)

    @property
    def position(self) -> Position:
        return union(w.position for w in self.words)

    @property
    def text(self) -> str:
        return " ".join(w.text for w in self.words)


@dataclass
class ParagraphSegment:
    lines: List[LineSegment] = field(default_factory=list)

    @property
    def words(self) -> List[WordSegment]:
        return [w for line in self.lines for w in line.words]

    @property
    def position(self) -> Position:
        return union(w.position for w in self.words)

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


def flatten_lines(paragraphs: List[ParagraphSegment]) -> List[LineSegment]:
    return [line for p in paragraphs for line in p.lines]


def to_texts(paragraphs: List[ParagraphSegment]) -> List[str]:
    """One string per paragraph: words joined by spaces, lines by newlines."""
    return [p.text for p in paragraphs]
