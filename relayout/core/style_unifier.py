"""
Style unification across fragmented detections.

OCR reports color and height per token, and those estimates jitter between
tokens of the same visual run. Three passes per paragraph fold them into
stable style runs:

1. adjacent grayscale-ish words merge unconditionally,
2. adjacent words merge when they are symbols or look alike,
3. a line adopts the previous line's style when both are uniform and close.

Example of pass 2:
    "Hello" (red), "," (blue), "World" (red)  ->  "Hello,World" (red)
"""

from __future__ import annotations

import logging
from typing import List

from relayout.core import color
from relayout.core.geometry import union
from relayout.core.language import is_only_symbol
from relayout.models.segment import LineSegment, ParagraphSegment, Style, WordSegment

logger = logging.getLogger(__name__)

# Word-level CIEDE2000 threshold inside one line.
WORD_MERGE_COLOR_DIFF_THRESHOLD = 0.239
# Line-level threshold; grayscale text gets more slack because its color
# estimates vary more between tokens of one visual block.
LINE_MERGE_COLOR_DIFF_THRESHOLD = 0.08
LINE_MERGE_GRAYSCALE_COLOR_DIFF_THRESHOLD = 0.35
# Relative height tolerance between words of a line.
HEIGHT_THRESHOLD = 0.4
# Relative height tolerance between lines.
HEIGHT_THRESHOLD_TOTAL = 0.125


def style_of(word: WordSegment) -> Style:
    if word.style is not None:
        return word.style
    return Style(text_color=color.BLACK, height=word.position.height)


def _is_symbol(word: WordSegment) -> bool:
    return is_only_symbol(word.text.strip())


def is_similar(previous: Style, current: Style, height_threshold: float, color_threshold: float) -> bool:
    if abs(previous.height - current.height) > previous.height * height_threshold:
        return False
    return color.distance(previous.text_color, current.text_color) <= color_threshold


def combine_words(previous: WordSegment, current: WordSegment) -> WordSegment:
    """
    Merge two adjacent words into one fragment.

    A symbol-only side takes the other side's style as-is: "(" + "Hello"
    keeps the style of "Hello", "Hello" + "," keeps the style of "Hello".
    """
    prev_style, cur_style = style_of(previous), style_of(current)
    if _is_symbol(previous):
        merged = cur_style
    elif _is_symbol(current):
        merged = prev_style
    else:
        merged = Style(
            text_color=color.blend(
                prev_style.text_color, cur_style.text_color, prev_style.weight, cur_style.weight
            ),
            height=(prev_style.height + cur_style.height) // 2,
            weight=prev_style.weight + cur_style.weight,
            font_weight=prev_style.font_weight,
        )
    return WordSegment(
        text=previous.text + current.text,
        position=union((previous.position, current.position)),
        font_size=previous.font_size,
        style=merged,
    )


def should_combine_words(previous: WordSegment, current: WordSegment) -> bool:
    if _is_symbol(previous) or _is_symbol(current):
        return True
    return is_similar(style_of(previous), style_of(current), HEIGHT_THRESHOLD, WORD_MERGE_COLOR_DIFF_THRESHOLD)


def should_treat_as_black(word: WordSegment) -> bool:
    return color.is_near_black(style_of(word).text_color)


def _fold_words(line: LineSegment, should_merge) -> LineSegment:
    combined: List[WordSegment] = []
    for word in line.words:
        if combined and should_merge(combined[-1], word):
            combined[-1] = combine_words(combined[-1], word)
        else:
            combined.append(word)
    return LineSegment(words=combined)


def group_black_words(line: LineSegment) -> LineSegment:
    return _fold_words(line, lambda a, b: should_treat_as_black(a) and should_treat_as_black(b))


def group_similar_words(line: LineSegment) -> LineSegment:
    return _fold_words(line, should_combine_words)


def _is_uniform(line: LineSegment) -> bool:
    last = style_of(line.words[-1])
    return all(style_of(w) == last for w in line.words)


def should_combine_lines(previous: LineSegment, current: LineSegment) -> bool:
    if not previous.words or not current.words:
        return False
    if not _is_uniform(previous) or not _is_uniform(current):
        return False

    prev_style = style_of(previous.words[-1])
    cur_style = style_of(current.words[-1])
    if abs(prev_style.height - cur_style.height) > prev_style.height * HEIGHT_THRESHOLD_TOTAL:
        return False

    threshold = LINE_MERGE_COLOR_DIFF_THRESHOLD
    if color.is_grayscale(prev_style.text_color) and color.is_grayscale(cur_style.text_color):
        threshold = LINE_MERGE_GRAYSCALE_COLOR_DIFF_THRESHOLD
    return color.distance(prev_style.text_color, cur_style.text_color) <= threshold


def unify_paragraph(paragraph: ParagraphSegment) -> ParagraphSegment:
    if not paragraph.lines:
        return paragraph

    lines = [group_similar_words(group_black_words(line)) for line in paragraph.lines]

    combined: List[LineSegment] = []
    for line in lines:
        if combined and should_combine_lines(combined[-1], line):
            shared = combined[-1].words[-1].style
            line = LineSegment(words=[WordSegment(w.text, w.position, w.font_size, shared) for w in line.words])
        combined.append(line)
    return ParagraphSegment(lines=combined)


def unify(paragraphs: List[ParagraphSegment]) -> List[ParagraphSegment]:
    """Unify styles paragraph by paragraph; paragraphs never exchange styles."""
    unified = [unify_paragraph(p) for p in paragraphs]
    before = sum(len(p.words) for p in paragraphs)
    after = sum(len(p.words) for p in unified)
    logger.debug(f"Style unification: {before} fragments -> {after} style runs")
    return unified
