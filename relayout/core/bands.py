"""
Band splitting for tall images.

OCR on very long images tends to miss text, so the image is cut into
horizontal bands at paragraph boundaries, each band is detected on its own
and the results are stitched back with their vertical offsets restored.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import List, Protocol

from PIL import Image

from relayout.errors import CollaboratorFailure, RelayoutError
from relayout.models.annotation import TextAnnotation

logger = logging.getLogger(__name__)

# Maximum vertical distance between consecutive paragraph bottoms before a cut.
MAX_BAND_HEIGHT = 200


class TextDetector(Protocol):
    async def detect_text(self, image_bytes: bytes) -> TextAnnotation: ...


async def detect(provider: TextDetector, image_bytes: bytes) -> TextAnnotation:
    """Call the OCR collaborator, mapping any failure to CollaboratorFailure."""
    try:
        return await provider.detect_text(image_bytes)
    except RelayoutError:
        raise
    except Exception as e:
        logger.error(f"Failed to detect text: {e}")
        raise CollaboratorFailure(f"OCR provider failed: {e}") from e


def split_points(annotation: TextAnnotation, image_height: int, max_height: int = MAX_BAND_HEIGHT) -> List[int]:
    """
    Cut positions along y, always starting at 0 and ending at image_height.

    A cut is placed at the previous paragraph's bottom whenever the next
    paragraph ends more than max_height below it, so bands never split a
    paragraph.
    """
    points = [0]
    current = 0
    for paragraph in annotation.paragraphs():
        bottom = max(0, paragraph.bounding_box.bottom)
        if bottom - current > max_height:
            points.append(current)
        current = bottom
    if points[-1] != image_height:
        points.append(image_height)
    return points


def adjust_vertical_positions(annotation: TextAnnotation, offset: int) -> None:
    """Shift every block, paragraph, word and symbol box down by offset, in place."""
    for page in annotation.pages:
        for block in page.blocks:
            block.bounding_box.shift_y(offset)
            for paragraph in block.paragraphs:
                paragraph.bounding_box.shift_y(offset)
                for word in paragraph.words:
                    word.bounding_box.shift_y(offset)
                    for symbol in word.symbols:
                        symbol.bounding_box.shift_y(offset)


def merge_annotations(annotations: List[TextAnnotation]) -> TextAnnotation:
    """Concatenate page lists in band order."""
    merged = TextAnnotation()
    for annotation in annotations:
        merged.pages.extend(annotation.pages)
    return merged


def crop_band(image: Image.Image, start: int, end: int) -> bytes:
    band = image.crop((0, start, image.width, end))
    buf = io.BytesIO()
    band.save(buf, format="PNG")
    return buf.getvalue()


async def _detect_band(provider: TextDetector, image: Image.Image, index: int, start: int, end: int) -> TextAnnotation:
    band_bytes = crop_band(image, start, end)
    annotation = await detect(provider, band_bytes)
    # The band task owns this annotation until it is returned.
    adjust_vertical_positions(annotation, start)
    logger.debug(f"Band {index} [{start}, {end}] detected")
    return annotation


async def ocr_in_bands(
    provider: TextDetector,
    image_bytes: bytes,
    image: Image.Image,
    max_height: int = MAX_BAND_HEIGHT,
) -> TextAnnotation:
    """
    Detect text on the whole image, then re-detect per band when the layout
    calls for it. Any band failure aborts the whole detection.
    """
    annotation = await detect(provider, image_bytes)

    points = split_points(annotation, image.height, max_height)
    # [0, height] means the whole image is processed in one go.
    if len(points) == 2:
        return annotation

    logger.info(f"Splitting image into {len(points) - 1} bands at {points}")
    tasks = [
        asyncio.create_task(_detect_band(provider, image, i, points[i], points[i + 1]))
        for i in range(len(points) - 1)
    ]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise
    return merge_annotations(list(results))
