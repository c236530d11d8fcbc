"""
Groups flat word detections into lines, then lines into paragraphs.

Both passes are folds over the input with positional heuristics tuned for
letter-granularity OCR jitter: words drift a few pixels vertically and the
emission order is not guaranteed to be top-to-bottom across blocks.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from relayout.models.segment import LineSegment, ParagraphSegment, WordSegment

logger = logging.getLogger(__name__)

# How far right (in average character widths) a word may start past the
# previous word's right edge and still continue the same line.
CHAR_GAP_FACTOR = 1.5
# Maximum vertical gap between lines of one paragraph, relative to line height.
PARAGRAPH_GAP_FACTOR = 0.95
# Maximum relative height difference between lines of one paragraph.
HEIGHT_THRESHOLD = 0.4


def letter_count(text: str) -> int:
    return sum(1 for ch in text if ch.isalpha())


def char_width(word: WordSegment) -> int:
    """Box width divided by the number of letters (at least one)."""
    return (word.position.right - word.position.left) // max(letter_count(word.text), 1)


def is_same_line(previous: WordSegment, current: WordSegment) -> bool:
    p, c = previous.position, current.position
    if p.left > c.left:
        return False
    middle = c.middle
    gap = max(char_width(previous), char_width(current)) * CHAR_GAP_FACTOR
    return p.top < middle < p.bottom and p.right >= c.left - int(gap)


def is_same_paragraph(previous: LineSegment, current: LineSegment) -> bool:
    p, c = previous.position, current.position
    prev_height = p.height

    overlaps = p.right >= c.left and p.left <= c.right
    close = p.bottom + int(prev_height * PARAGRAPH_GAP_FACTOR) >= c.top
    similar_height = abs(c.height - prev_height) <= prev_height * HEIGHT_THRESHOLD
    return overlaps and close and similar_height


def group_lines(words: Sequence[WordSegment]) -> List[LineSegment]:
    lines: List[LineSegment] = []
    for word in words:
        if lines and is_same_line(lines[-1].words[-1], word):
            last = lines[-1]
            lines[-1] = LineSegment(words=last.words + [word])
        else:
            lines.append(LineSegment(words=[word]))
    # Stable sort keeps emission order for lines starting on the same row.
    lines.sort(key=lambda line: line.position.top)
    return lines


def group_paragraphs(lines: Sequence[LineSegment]) -> List[ParagraphSegment]:
    """
    Attach each line to the first paragraph whose last line continues it.

    Scanning every paragraph (not only the latest one) lets interleaved
    columns return to their own paragraph.
    """
    paragraphs: List[ParagraphSegment] = []
    for line in lines:
        target = next(
            (i for i, p in enumerate(paragraphs) if is_same_paragraph(p.lines[-1], line)),
            None,
        )
        if target is None:
            paragraphs.append(ParagraphSegment(lines=[line]))
        else:
            paragraphs[target] = ParagraphSegment(lines=paragraphs[target].lines + [line])
    return paragraphs


def segment(words: Sequence[WordSegment]) -> List[ParagraphSegment]:
    """Words in OCR emission order -> paragraphs, top to bottom."""
    if not words:
        return []
    lines = group_lines(words)
    paragraphs = group_paragraphs(lines)
    logger.debug(f"Segmented {len(words)} words into {len(lines)} lines, {len(paragraphs)} paragraphs")
    return paragraphs
