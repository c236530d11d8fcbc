"""
Bounding-box primitives shared by every stage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class Position:
    """Axis-aligned box in integer pixel coordinates."""
    top: int
    left: int
    bottom: int
    right: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def middle(self) -> int:
        """Integer vertical center."""
        return (self.top + self.bottom) // 2

    def shifted(self, dy: int = 0, dx: int = 0) -> "Position":
        return Position(self.top + dy, self.left + dx, self.bottom + dy, self.right + dx)

    def to_xyxy(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)


# Identity element of union(); an empty fold yields this sentinel.
EMPTY_POSITION = Position(top=INT32_MAX, left=INT32_MAX, bottom=0, right=0)


def union(positions: Iterable[Position]) -> Position:
    """Smallest box covering all positions."""
    top, left, bottom, right = EMPTY_POSITION.top, EMPTY_POSITION.left, 0, 0
    for p in positions:
        top = min(top, p.top)
        left = min(left, p.left)
        bottom = max(bottom, p.bottom)
        right = max(right, p.right)
    return Position(top=top, left=left, bottom=bottom, right=right)


def from_vertices(vertices: Iterable[Tuple[int, int]]) -> Position:
    """Bounding box of a polygon given as (x, y) vertices."""
    top, left, bottom, right = EMPTY_POSITION.top, EMPTY_POSITION.left, 0, 0
    for x, y in vertices:
        top = min(top, int(y))
        left = min(left, int(x))
        bottom = max(bottom, int(y))
        right = max(right, int(x))
    return Position(top=top, left=left, bottom=bottom, right=right)


def combined_line_positions(positions: Sequence[Position]) -> List[Position]:
    """
    Collapse a line's word boxes into row regions.

    A box joins the last region when it straddles that region's vertical
    center; otherwise it opens a new region. Wrapped lines therefore yield
    one region per visual row.
    """
    combined: List[Position] = []
    for current in positions:
        if not combined:
            combined.append(current)
            continue
        last = combined[-1]
        mid = last.middle
        if current.top <= mid <= current.bottom:
            combined[-1] = union((last, current))
        else:
            combined.append(current)
    return combined
