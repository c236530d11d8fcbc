"""
Character-grid rendering of detected paragraphs.

The grid keeps the rough 2-D arrangement of the page (tables, columns) in
plain text so the completion provider can turn it into markdown:

    Monday  Tuesday  Wednesday  Thursday  Friday
    A       B        C          D         E
"""

from __future__ import annotations

import math
from typing import List, Sequence

from relayout.core.geometry import union
from relayout.core.prompts import MARKDOWN_PREFIX, MARKDOWN_SUFFIX
from relayout.errors import InvalidInput, LayoutOverflow, SchemaViolation
from relayout.models.segment import ParagraphSegment

# Runs of blank rows longer than this are collapsed to keep prompts short.
MAX_EMPTY_ROWS = 2


def _cell_size(paragraph: ParagraphSegment) -> tuple:
    words = paragraph.words
    height = max((w.position.height for w in words), default=0)
    width = max((w.position.width for w in words), default=0)
    if height <= 0 or width <= 0:
        raise InvalidInput("text segment has invalid dimensions")
    max_len = max((len("".join(w.text for w in line.words)) for line in paragraph.lines), default=0)
    if max_len == 0:
        raise InvalidInput("text segment is empty")
    return height // len(paragraph.lines), width // max_len


def align_with_spaces(width: int, height: int, paragraphs: Sequence[ParagraphSegment]) -> str:
    if not paragraphs:
        return ""

    cells = [_cell_size(p) for p in paragraphs]
    cell_h = min(c[0] for c in cells)
    cell_w = min(c[1] for c in cells)
    if cell_h <= 0 or cell_w <= 0:
        raise InvalidInput("text segment has invalid dimensions")

    grid_h = math.ceil(height / cell_h)
    grid_w = math.ceil(width / cell_w)
    grid: List[List[str]] = [[" "] * grid_w for _ in range(grid_h)]

    for paragraph in paragraphs:
        box = union(w.position for w in paragraph.words)
        start_x = box.left // cell_w
        start_y = box.top // cell_h
        lines = ["".join(w.text + " " for w in line.words) for line in paragraph.lines]
        if start_y + len(lines) > grid_h:
            raise LayoutOverflow("text segment exceeds the image height")
        for dy, line in enumerate(lines):
            if start_x + len(line) > grid_w:
                raise LayoutOverflow("text segment exceeds the image width")
            grid[start_y + dy][start_x:start_x + len(line)] = list(line)

    rows: List[str] = []
    empty = 0
    for row in grid:
        trimmed = "".join(row).rstrip(" ")
        if not trimmed:
            empty += 1
            if empty > MAX_EMPTY_ROWS:
                continue
        else:
            empty = 0
        rows.append(trimmed + "\n")
    return "".join(rows)


def extract_markdown(text: str) -> str:
    """Content between the first markdown fence opener and the last closer."""
    start = text.find(MARKDOWN_PREFIX)
    if start < 0:
        raise SchemaViolation("no markdown block found")
    end = text.rfind(MARKDOWN_SUFFIX)
    if end < start + len(MARKDOWN_PREFIX) - 1:
        raise SchemaViolation("no closing markdown block found")
    return text[start + len(MARKDOWN_PREFIX):max(end, start + len(MARKDOWN_PREFIX))]


def wrap_markdown(markdown: str) -> str:
    if markdown.startswith(MARKDOWN_PREFIX):
        return markdown
    return MARKDOWN_PREFIX + markdown + MARKDOWN_SUFFIX
