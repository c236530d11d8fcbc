"""
Shared fakes: scripted completion provider, fake OCR and a monospace measurer.
"""

import asyncio
import io
import json
from typing import Callable, List, Optional, Sequence, Tuple, Union

import pytest
from PIL import Image

from relayout.core.geometry import Position
from relayout.models.annotation import Block, BoundingPoly, Page, Paragraph, StyleHint, Symbol, TextAnnotation, Word
from relayout.models.segment import LineSegment, ParagraphSegment, Style, WordSegment

Answer = Union[str, Exception, Callable[[str], str]]


def word(text: str, left: int, top: int, right: int, bottom: int, font_size=None, style=None) -> WordSegment:
    return WordSegment(text=text, position=Position(top=top, left=left, bottom=bottom, right=right),
                       font_size=font_size, style=style)


def styled(text: str, left: int, top: int, right: int, bottom: int, rgb=(0.0, 0.0, 0.0), font_weight=400) -> WordSegment:
    return word(text, left, top, right, bottom, style=Style(text_color=rgb, height=bottom - top, font_weight=font_weight))


def line(*words: WordSegment) -> LineSegment:
    return LineSegment(words=list(words))


def paragraph(*lines: LineSegment) -> ParagraphSegment:
    return ParagraphSegment(lines=list(lines))


def annotation_word(text: str, left: int, top: int, right: int, bottom: int, style: Optional[StyleHint] = None) -> Word:
    return Word(
        symbols=[Symbol(ch) for ch in text],
        bounding_box=BoundingPoly.from_box(left, top, right, bottom),
        style=style,
    )


def annotation_of(paragraphs: Sequence[Sequence[Word]], width: int = 0, height: int = 0) -> TextAnnotation:
    """One block per paragraph; the paragraph box is the union of its word boxes."""
    page = Page(width=width, height=height)
    for words in paragraphs:
        xs = [v.x for w in words for v in w.bounding_box.vertices]
        ys = [v.y for w in words for v in w.bounding_box.vertices]
        poly = BoundingPoly.from_box(min(xs), min(ys), max(xs), max(ys))
        page.blocks.append(Block(paragraphs=[Paragraph(words=list(words), bounding_box=poly)], bounding_box=poly))
    return TextAnnotation(pages=[page])


def png_bytes(width: int = 300, height: int = 200, color="white") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def echo_translation(transform: Callable[[str], str] = str.upper) -> Callable[[str], str]:
    """Answer a segment batch with every text transformed, ids untouched."""
    def answer(payload: str) -> str:
        body = json.loads(payload)
        return json.dumps([[{"id": s["id"], "text": transform(s["text"])} for s in ln] for ln in body])
    return answer


class ScriptedCompletion:
    """
    Replays answers in order; the last one repeats forever. An answer can be
    a string, an exception to raise, or a callable receiving the payload.
    """

    def __init__(self, *answers: Answer, delay: Optional[Callable[[str], float]] = None):
        self.answers: List[Answer] = list(answers)
        self.calls: List[Tuple[str, list, str, tuple]] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, system_prompt, examples, user_payload, images=()):
        self.calls.append((system_prompt, list(examples), user_payload, tuple(images)))
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay is not None:
                await asyncio.sleep(self.delay(user_payload))
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(user_payload)
        return answer


class FakeOCR:
    """Returns a fixed annotation, or whatever `handler(image_bytes)` builds."""

    def __init__(self, result=None, handler=None):
        self.result = result
        self.handler = handler
        self.calls: List[bytes] = []

    def name(self) -> str:
        return "fake"

    async def detect_text(self, image_bytes: bytes) -> TextAnnotation:
        self.calls.append(image_bytes)
        if self.handler is not None:
            return self.handler(image_bytes)
        return self.result

    async def detect_document(self, image_bytes: bytes) -> TextAnnotation:
        return await self.detect_text(image_bytes)


class MonospaceMeasurer:
    """Every character is half the font size wide; height equals the size."""

    def measure(self, text: str, size: float, font_weight: int) -> Tuple[float, float]:
        return (len(text) * size * 0.5, float(size))


@pytest.fixture
def measurer() -> MonospaceMeasurer:
    return MonospaceMeasurer()
