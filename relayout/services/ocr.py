"""
OCR backends producing TextAnnotation trees.

Blocking SDK/ONNX calls are pushed to a worker thread so the event loop
keeps serving other bands and requests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol

import cv2
import numpy as np

from relayout.models.annotation import (
    Block,
    BoundingPoly,
    Page,
    Paragraph,
    StyleHint,
    Symbol,
    TextAnnotation,
    Vertex,
    Word,
)
from relayout.errors import CollaboratorFailure
from relayout.utils.image_utils import bytes_to_bgr, median_rgb, stroke_mask

logger = logging.getLogger(__name__)

# Ink covering more than this share of a word crop reads as bold.
BOLD_INK_RATIO = 0.28


class OCRProvider(Protocol):
    def name(self) -> str: ...
    async def detect_text(self, image_bytes: bytes) -> TextAnnotation: ...


class DocumentOCRProvider(Protocol):
    async def detect_document(self, image_bytes: bytes) -> TextAnnotation: ...


# -----------------------------
# Google Cloud Vision
# -----------------------------
class GoogleVisionOCR:
    def __init__(self, language_hints: Optional[List[str]] = None) -> None:
        try:
            from google.cloud import vision  # type: ignore
        except Exception as e:
            raise RuntimeError("google-cloud-vision not installed. pip install google-cloud-vision") from e
        self._vision = vision
        self._client = vision.ImageAnnotatorClient()
        self.language_hints = language_hints or []

    def name(self) -> str:
        return "vision"

    @staticmethod
    def _poly(bounding_box) -> BoundingPoly:
        return BoundingPoly([Vertex(int(v.x), int(v.y)) for v in bounding_box.vertices])

    def _convert(self, response) -> TextAnnotation:
        annotation = TextAnnotation()
        for page in response.full_text_annotation.pages:
            out_page = Page(width=int(page.width), height=int(page.height))
            for block in page.blocks:
                out_block = Block(bounding_box=self._poly(block.bounding_box))
                for paragraph in block.paragraphs:
                    out_paragraph = Paragraph(bounding_box=self._poly(paragraph.bounding_box))
                    for word in paragraph.words:
                        out_paragraph.words.append(Word(
                            symbols=[Symbol(s.text, self._poly(s.bounding_box)) for s in word.symbols],
                            bounding_box=self._poly(word.bounding_box),
                        ))
                    out_block.paragraphs.append(out_paragraph)
                out_page.blocks.append(out_block)
            annotation.pages.append(out_page)
        return annotation

    def _detect(self, image_bytes: bytes) -> TextAnnotation:
        vision = self._vision
        image = vision.Image(content=image_bytes)
        context = vision.ImageContext(language_hints=self.language_hints)
        response = self._client.document_text_detection(image=image, image_context=context)
        if response.error.message:
            raise CollaboratorFailure(f"Cloud Vision API error: {response.error.message}")
        return self._convert(response)

    async def detect_text(self, image_bytes: bytes) -> TextAnnotation:
        return await asyncio.to_thread(self._detect, image_bytes)


# -----------------------------
# RapidOCR (local, ONNX)
# -----------------------------
def split_line_into_words(text: str, box: np.ndarray) -> List[Word]:
    """
    RapidOCR reports whole lines; cut the line box into word boxes in
    proportion to the character count of each whitespace-separated word.
    """
    xs, ys = box[:, 0], box[:, 1]
    left, right = int(xs.min()), int(xs.max())
    top, bottom = int(ys.min()), int(ys.max())
    tokens = text.split()
    if not tokens:
        return []

    total = len(text)
    per_char = (right - left) / max(1, total)
    words: List[Word] = []
    cursor = 0
    for token in tokens:
        start = text.index(token, cursor)
        end = start + len(token)
        cursor = end
        x0 = left + int(round(start * per_char))
        x1 = left + int(round(end * per_char))
        w_char = (x1 - x0) / max(1, len(token))
        symbols = [
            Symbol(ch, BoundingPoly.from_box(x0 + int(i * w_char), top, x0 + int((i + 1) * w_char), bottom))
            for i, ch in enumerate(token)
        ]
        words.append(Word(symbols=symbols, bounding_box=BoundingPoly.from_box(x0, top, x1, bottom)))
    return words


class RapidOCRProvider:
    def __init__(self) -> None:
        try:
            from rapidocr_onnxruntime import RapidOCR  # type: ignore
        except Exception as e:
            raise RuntimeError("rapidocr-onnxruntime not installed. pip install rapidocr-onnxruntime") from e
        self._ocr = RapidOCR()

    def name(self) -> str:
        return "rapid"

    def _detect(self, image_bytes: bytes) -> TextAnnotation:
        bgr = bytes_to_bgr(image_bytes)
        h, w = bgr.shape[:2]
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        res, _ = self._ocr(rgb)
        page = Page(width=w, height=h)
        for item in res or []:
            if len(item) < 2:
                continue
            box = np.array(item[0], dtype=np.int32)
            text = str(item[1]) if item[1] is not None else ""
            if box.shape != (4, 2):
                continue
            words = split_line_into_words(text, box)
            if not words:
                continue
            poly = BoundingPoly([Vertex(int(x), int(y)) for x, y in box])
            page.blocks.append(Block(paragraphs=[Paragraph(words=words, bounding_box=poly)], bounding_box=poly))
        return TextAnnotation(pages=[page])

    async def detect_text(self, image_bytes: bytes) -> TextAnnotation:
        return await asyncio.to_thread(self._detect, image_bytes)


def build_ocr(backend: str, language_hints: Optional[List[str]] = None) -> OCRProvider:
    backend = (backend or "vision").lower()
    if backend == "vision":
        return GoogleVisionOCR(language_hints=language_hints)
    if backend == "rapid":
        return RapidOCRProvider()
    raise ValueError(f"Unknown OCR backend: {backend}")


# -----------------------------
# Style estimation on top of any OCR backend
# -----------------------------
def estimate_style(bgr: np.ndarray, left: int, top: int, right: int, bottom: int) -> StyleHint:
    h, w = bgr.shape[:2]
    x0, x1 = max(0, left), min(w, right)
    y0, y1 = max(0, top), min(h, bottom)
    if x1 <= x0 or y1 <= y0:
        return StyleHint(pixel_font_size=float(max(0, bottom - top)))

    roi = bgr[y0:y1, x0:x1]
    m = stroke_mask(roi)
    ink = roi[m > 0]
    r, g, b = median_rgb(cv2.cvtColor(ink.reshape(-1, 1, 3), cv2.COLOR_BGR2RGB)) if ink.size else (0, 0, 0)
    ratio = float(np.count_nonzero(m)) / float(m.size)
    return StyleHint(
        pixel_font_size=float(bottom - top),
        text_color=(r / 255.0, g / 255.0, b / 255.0),
        bold=ratio >= BOLD_INK_RATIO,
    )


class PixelStyleOCR:
    """Document OCR: plain detections plus per-word style read off the pixels."""

    def __init__(self, ocr: OCRProvider) -> None:
        self.ocr = ocr

    def name(self) -> str:
        return f"{self.ocr.name()}+style"

    def _annotate(self, image_bytes: bytes, annotation: TextAnnotation) -> TextAnnotation:
        bgr = bytes_to_bgr(image_bytes)
        for word in annotation.words():
            xs = [v.x for v in word.bounding_box.vertices]
            ys = [v.y for v in word.bounding_box.vertices]
            if not xs:
                continue
            word.style = estimate_style(bgr, min(xs), min(ys), max(xs), max(ys))
        return annotation

    async def detect_document(self, image_bytes: bytes) -> TextAnnotation:
        annotation = await self.ocr.detect_text(image_bytes)
        return await asyncio.to_thread(self._annotate, image_bytes, annotation)

    async def detect_text(self, image_bytes: bytes) -> TextAnnotation:
        return await self.ocr.detect_text(image_bytes)
