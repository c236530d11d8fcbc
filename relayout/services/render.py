"""
Composition: translated words onto the cleaned background, and numbered
paragraph boxes for the image-to-text flow.
"""

from __future__ import annotations

import logging
from typing import Sequence, Tuple

import cv2
from PIL import Image, ImageDraw

from relayout.core.geometry import union
from relayout.core.layout import DEFAULT_FONT_SIZE
from relayout.models.segment import REGULAR_WEIGHT, RGB, ParagraphSegment, WordSegment
from relayout.services.fonts import PILTextMeasurer
from relayout.utils.image_utils import bgr_to_pil, pil_to_bgr

logger = logging.getLogger(__name__)

# Baseline sits this fraction of the font size below the box's vertical center.
BASELINE_ANCHOR = 0.3

BOX_COLOR_BGR = (255, 0, 0)
NUMBER_COLOR_BGR = (0, 0, 255)
BOX_THICKNESS = 3


def to_rgb255(rgb: RGB) -> Tuple[int, int, int]:
    return tuple(int(round(max(0.0, min(1.0, c)) * 255)) for c in rgb)


def draw_texts(image: Image.Image, words: Sequence[WordSegment], measurer: PILTextMeasurer) -> Image.Image:
    """Draw positioned words left-aligned, vertically centered on their box."""
    out = image.copy()
    draw = ImageDraw.Draw(out)
    for word in words:
        if not word.text.strip():
            continue
        size = word.font_size or DEFAULT_FONT_SIZE
        weight = word.style.font_weight if word.style else REGULAR_WEIGHT
        fill = to_rgb255(word.style.text_color) if word.style else (0, 0, 0)
        font = measurer.font(size, weight)
        x = word.position.left
        y = (word.position.top + word.position.bottom) / 2 + BASELINE_ANCHOR * size
        draw.text((x, y), word.text, font=font, fill=fill, anchor="ls")
    logger.debug(f"Drew {len(words)} words")
    return out


def draw_paragraph_boxes(image: Image.Image, paragraphs: Sequence[ParagraphSegment]) -> Image.Image:
    """Blue box around each paragraph with its 1-based number in red above it."""
    bgr = pil_to_bgr(image)
    for i, paragraph in enumerate(paragraphs):
        box = union(w.position for w in paragraph.words)
        cv2.rectangle(
            bgr,
            (box.left - BOX_THICKNESS, box.top - BOX_THICKNESS),
            (box.right + BOX_THICKNESS, box.bottom + BOX_THICKNESS),
            BOX_COLOR_BGR,
            BOX_THICKNESS,
        )
        cv2.putText(
            bgr,
            str(i + 1),
            (box.left, max(0, box.top - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.7,
            NUMBER_COLOR_BGR,
            2,
            cv2.LINE_AA,
        )
    return bgr_to_pil(bgr)
