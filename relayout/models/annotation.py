"""
OCR output in the page -> block -> paragraph -> word -> symbol hierarchy,
plus conversion to word segments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from relayout.core.geometry import from_vertices
from relayout.models.segment import RGB, Style, WordSegment, resolve_font_weight


@dataclass
class Vertex:
    x: int = 0
    y: int = 0


@dataclass
class BoundingPoly:
    vertices: List[Vertex] = field(default_factory=list)

    @classmethod
    def from_box(cls, left: int, top: int, right: int, bottom: int) -> "BoundingPoly":
        return cls([Vertex(left, top), Vertex(right, top), Vertex(right, bottom), Vertex(left, bottom)])

    def shift_y(self, offset: int) -> None:
        for v in self.vertices:
            v.y += offset

    @property
    def bottom(self) -> int:
        return max((v.y for v in self.vertices), default=0)


@dataclass
class StyleHint:
    """Per-token style reported by a document-structure OCR provider."""
    pixel_font_size: float = 0.0
    text_color: RGB = (0.0, 0.0, 0.0)
    bold: bool = False
    # 0 means the provider did not report a numeric weight.
    font_weight: int = 0


@dataclass
class Symbol:
    text: str
    bounding_box: BoundingPoly = field(default_factory=BoundingPoly)


@dataclass
class Word:
    symbols: List[Symbol] = field(default_factory=list)
    bounding_box: BoundingPoly = field(default_factory=BoundingPoly)
    style: Optional[StyleHint] = None

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.symbols)


@dataclass
class Paragraph:
    words: List[Word] = field(default_factory=list)
    bounding_box: BoundingPoly = field(default_factory=BoundingPoly)


@dataclass
class Block:
    paragraphs: List[Paragraph] = field(default_factory=list)
    bounding_box: BoundingPoly = field(default_factory=BoundingPoly)


@dataclass
class Page:
    blocks: List[Block] = field(default_factory=list)
    width: int = 0
    height: int = 0


@dataclass
class TextAnnotation:
    pages: List[Page] = field(default_factory=list)

    def paragraphs(self) -> Iterator[Paragraph]:
        for page in self.pages:
            for block in page.blocks:
                yield from block.paragraphs

    def words(self) -> Iterator[Word]:
        for paragraph in self.paragraphs():
            yield from paragraph.words


def to_word_segments(annotation: TextAnnotation) -> List[WordSegment]:
    """Plain detections: text and position only."""
    return [
        WordSegment(
            text=word.text,
            position=from_vertices((v.x, v.y) for v in word.bounding_box.vertices),
        )
        for word in annotation.words()
    ]


def to_styled_word_segments(annotation: TextAnnotation) -> List[WordSegment]:
    """
    Detections with style hints. Height comes from the box, the weight
    counter starts at 1 and the font size is the reported pixel size.
    """
    segments: List[WordSegment] = []
    for word in annotation.words():
        position = from_vertices((v.x, v.y) for v in word.bounding_box.vertices)
        hint = word.style or StyleHint()
        segments.append(
            WordSegment(
                text=word.text.rstrip("\n"),
                position=position,
                font_size=float(hint.pixel_font_size),
                style=Style(
                    text_color=hint.text_color,
                    height=position.height,
                    weight=1,
                    font_weight=resolve_font_weight(hint.font_weight, hint.bold),
                ),
            )
        )
    return segments
