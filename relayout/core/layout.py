"""
Font fitting and text repositioning.

Translated text rarely has the length of the source, so each line gets the
largest font size at which its sentence still fits the line's original box,
and words are then packed greedily into the line's row regions.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import replace
from typing import Deque, List, Optional, Protocol, Sequence, Tuple

from relayout.core.geometry import Position, combined_line_positions
from relayout.models.segment import REGULAR_WEIGHT, LineSegment, WordSegment

logger = logging.getLogger(__name__)

DEFAULT_FONT_SIZE = 12.0


class TextMeasurer(Protocol):
    def measure(self, text: str, size: float, font_weight: int) -> Tuple[float, float]:
        """Rendered (width, height) of text at size for the given weight."""
        ...


def _font_weight(word: WordSegment) -> int:
    return word.style.font_weight if word.style is not None else REGULAR_WEIGHT


def line_regions(positions: Sequence[Position]) -> List[Position]:
    """Row regions of a line, independent of the order the words arrive in."""
    return combined_line_positions(sorted(positions, key=lambda p: (p.top, p.left)))


def fit_font_size(
    measurer: TextMeasurer,
    text: str,
    original_size: float,
    box: Tuple[float, float],
    font_weight: int = REGULAR_WEIGHT,
) -> float:
    """
    Largest size <= original_size at which text fits box, never below 1.
    Float binary search stepping by 1 on each side.
    """
    box_w, box_h = box

    def fits(size: float) -> bool:
        w, h = measurer.measure(text, size, font_weight)
        return w <= box_w and h <= box_h

    if fits(original_size):
        return float(original_size)

    low, high = 1.0, float(original_size)
    best = 1.0
    while low <= high:
        mid = (low + high) / 2
        if fits(mid):
            best = max(best, mid)
            low = mid + 1
        else:
            high = mid - 1
    # high is unprobed when the last step shrank it; fall back to the best probe.
    if high >= 1 and fits(high):
        return max(high, best)
    return best


def _original_size(line: LineSegment, default_size: float) -> float:
    for word in line.words:
        if word.font_size is not None and word.font_size > 0:
            return float(word.font_size)
    first = line.words[0]
    if first.style is not None and first.style.height > 0:
        return float(first.style.height)
    return default_size


def resize_font(
    lines: Sequence[LineSegment],
    measurer: TextMeasurer,
    default_size: float = DEFAULT_FONT_SIZE,
) -> List[LineSegment]:
    resized: List[LineSegment] = []
    for line in lines:
        if not line.words:
            continue
        regions = line_regions([w.position for w in line.words])
        box = (sum(r.width for r in regions), max(r.height for r in regions))
        sentence = " ".join(w.text for w in line.words)
        original = _original_size(line, default_size)
        size = fit_font_size(measurer, sentence, original, box, _font_weight(line.words[0]))

        words = []
        for word in line.words:
            current = word.font_size if word.font_size else size
            words.append(replace(word, font_size=min(current, size)))
        resized.append(LineSegment(words=words))
    return resized


def _fitting_prefix(measurer: TextMeasurer, word: WordSegment, size: float, width: float) -> int:
    """Length of the longest character prefix no wider than width, by bisection."""
    low, high = 0, len(word.text)
    while low < high:
        mid = (low + high + 1) // 2
        w, _ = measurer.measure(word.text[:mid], size, _font_weight(word))
        if w <= width:
            low = mid
        else:
            high = mid - 1
    return low


def reposition_text(
    positions: Sequence[Position],
    words: Sequence[WordSegment],
    measurer: TextMeasurer,
    default_size: float = DEFAULT_FONT_SIZE,
) -> List[WordSegment]:
    """
    Pack words left to right into the row regions of their line.

    A word that overflows the current region is split at the longest
    character prefix that still fits; the rest continues in the next region.
    Whatever is left when the regions run out is dropped.
    """
    queue: Deque[WordSegment] = deque(w.with_text(w.text + " ") for w in words)
    placed: List[WordSegment] = []

    for region in line_regions(positions):
        if not queue:
            break
        cursor = region.left
        while queue:
            word = queue.popleft()
            size = word.font_size or default_size
            width, _ = measurer.measure(word.text, size, _font_weight(word))
            # Rounded up so the box always covers the measured text.
            advance = math.ceil(width)
            if cursor + advance <= region.right:
                placed.append(replace(
                    word,
                    position=Position(top=region.top, left=cursor, bottom=region.bottom, right=cursor + advance),
                ))
                cursor += advance
                continue

            count = _fitting_prefix(measurer, word, size, region.right - cursor)
            if count > 0:
                placed.append(replace(
                    word,
                    text=word.text[:count],
                    position=Position(top=region.top, left=cursor, bottom=region.bottom, right=region.right),
                ))
            rest = word.text[count:]
            if rest.strip():
                queue.appendleft(word.with_text(rest))
            break

    if queue:
        logger.debug(f"Dropped {len(queue)} words that did not fit their line")
    return placed


def layout_lines(
    lines: Sequence[LineSegment],
    measurer: TextMeasurer,
    default_size: Optional[float] = None,
) -> List[WordSegment]:
    """Fit and place every line; returns a flat list of positioned words."""
    size = default_size or DEFAULT_FONT_SIZE
    placed: List[WordSegment] = []
    for line in resize_font(lines, measurer, size):
        placed.extend(reposition_text([w.position for w in line.words], line.words, measurer, size))
    return placed
