"""
Request pipelines: image -> translated image, image -> translated markdown,
image -> numbered paragraphs with translations.

Collaborators (OCR, completion, inpainting, storage, fonts) are built lazily
from settings on first use and shared across requests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

import httpx
from PIL import Image

from relayout.config import Settings, get_settings
from relayout.core import prompts
from relayout.core.bands import detect, ocr_in_bands
from relayout.core.language import Language, filter_non_target_language, has_letters
from relayout.core.layout import layout_lines
from relayout.core.markdown import align_with_spaces
from relayout.core.orchestrator import RetryPolicy, TranslationOrchestrator, gather_or_cancel
from relayout.core.segmenter import segment
from relayout.core.style_unifier import unify
from relayout.errors import CollaboratorFailure, InvalidInput, RelayoutError
from relayout.models.annotation import TextAnnotation, to_styled_word_segments, to_word_segments
from relayout.models.segment import LineSegment, ParagraphSegment, WordSegment
from relayout.services.completion import GeminiCompletionProvider
from relayout.services.fonts import FontProvider, PILTextMeasurer
from relayout.services.inpaint import BaseInpaint, build_inpainter
from relayout.services.ocr import DocumentOCRProvider, OCRProvider, PixelStyleOCR, build_ocr
from relayout.services.render import draw_paragraph_boxes, draw_texts
from relayout.services.storage import StorageProvider, artifact_key, build_storage, save_best_effort
from relayout.utils.image_utils import decode_image, encode_png, to_data_uri

logger = logging.getLogger(__name__)


@dataclass
class ImageResult:
    uri_image: str
    paragraphs: int = 0
    time_ms: int = 0


@dataclass
class MarkdownResult:
    markdown: str
    time_ms: int = 0


@dataclass
class TextFromImageResult:
    uri_image: str
    # (original paragraph text, translated text) in paragraph order
    sentences: List[Tuple[str, str]] = field(default_factory=list)
    time_ms: int = 0


def now_ms() -> int:
    return int(time.time() * 1000)


class TranslateService:
    """
    Wires the core stages to the configured collaborators. Every fatal
    error aborts the request with a RelayoutError; nothing partial is returned.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ocr: Optional[OCRProvider] = None,
        document_ocr: Optional[DocumentOCRProvider] = None,
        completion=None,
        inpainter: Optional[BaseInpaint] = None,
        storage: Optional[StorageProvider] = None,
        fonts: Optional[FontProvider] = None,
        examples: Optional[prompts.Examples] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._ocr = ocr
        self._document_ocr = document_ocr
        self._completion = completion
        self._inpainter = inpainter
        self._storage = storage
        self._fonts = fonts
        self._examples = examples

    # lazy collaborators

    def _get_ocr(self) -> OCRProvider:
        if self._ocr is None:
            self._ocr = build_ocr(self._settings.DEFAULT_OCR_BACKEND)
            logger.info(f"OCR backend: {self._ocr.name()}")
        return self._ocr

    def _get_document_ocr(self) -> DocumentOCRProvider:
        if self._document_ocr is None:
            self._document_ocr = PixelStyleOCR(self._get_ocr())
        return self._document_ocr

    def _get_completion(self):
        if self._completion is None:
            s = self._settings
            self._completion = GeminiCompletionProvider(
                project=s.GCP_PROJECT,
                location=s.GCP_LOCATION,
                model=s.GEMINI_MODEL,
                temperature=s.COMPLETION_TEMPERATURE,
                api_key=s.GEMINI_API_KEY,
            )
        return self._completion

    def _get_inpainter(self) -> BaseInpaint:
        if self._inpainter is None:
            s = self._settings
            self._inpainter = build_inpainter(
                s.DEFAULT_INPAINT_BACKEND, s.LAMA_DEVICE, radius=s.INPAINT_RADIUS, padding=s.MASK_PADDING
            )
            logger.info(f"Inpaint backend: {self._inpainter.name()}")
        return self._inpainter

    def _get_storage(self) -> StorageProvider:
        if self._storage is None:
            self._storage = build_storage(self._settings.STORAGE_BACKEND, self._settings.STORAGE_DIR)
        return self._storage

    def _get_fonts(self) -> FontProvider:
        if self._fonts is None:
            self._fonts = FontProvider(self._settings.FONT_DIR)
        return self._fonts

    def _get_examples(self) -> prompts.Examples:
        if self._examples is None:
            self._examples = prompts.load_examples(self._settings.EXAMPLES_DIR)
        return self._examples

    def orchestrator(self, language: Language) -> TranslationOrchestrator:
        s = self._settings
        return TranslationOrchestrator(
            provider=self._get_completion(),
            target_language=language,
            batch_size=s.TRANSLATE_BATCH_SIZE,
            retry=RetryPolicy(max_retries=s.TRANSLATE_MAX_RETRIES, interval=s.TRANSLATE_RETRY_INTERVAL_MS / 1000.0),
            max_concurrency=s.TRANSLATE_MAX_CONCURRENCY,
            examples=self._get_examples(),
        )

    @property
    def model_name(self) -> str:
        return self._settings.GEMINI_MODEL

    async def _detect_document(self, image_bytes: bytes) -> TextAnnotation:
        try:
            return await self._get_document_ocr().detect_document(image_bytes)
        except RelayoutError:
            raise
        except Exception as e:
            logger.error(f"Failed to detect document: {e}")
            raise CollaboratorFailure(f"document OCR failed: {e}") from e

    async def download_image(self, image_url: str) -> bytes:
        """Fetch an image for the URL endpoints; unreachable or non-2xx URLs are invalid input."""
        try:
            async with httpx.AsyncClient(timeout=self._settings.DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
                response = await client.get(image_url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to download {image_url}: {e}")
            raise InvalidInput(f"failed to download image: {e}") from e
        logger.info(f"Downloaded {len(response.content)} bytes from {image_url}")
        return response.content

    # pipelines

    async def translate_to_image(self, image_bytes: bytes, target_language: Union[str, Language, None]) -> ImageResult:
        t0 = now_ms()
        language = target_language if isinstance(target_language, Language) else Language.parse(target_language)
        image = decode_image(image_bytes)
        storage = self._get_storage()
        ts = int(time.time())
        bucket = self._settings.TO_IMAGE_BUCKET

        await save_best_effort(storage, bucket, artifact_key(self.model_name, language.value, "before.png", ts), image_bytes)

        annotation = await self._detect_document(image_bytes)
        paragraphs = segment(to_styled_word_segments(annotation))
        paragraphs = filter_non_target_language(paragraphs, language)
        paragraphs = unify(paragraphs)
        logger.info(f"[to_image] {len(paragraphs)} paragraphs to translate into {language.value}")

        regions = [line.position for p in paragraphs for line in p.lines if line.words]
        orchestrator = self.orchestrator(language)
        background, lines = await gather_or_cancel([
            self._get_inpainter().remove_regions(image, regions),
            orchestrator.translate_paragraphs(paragraphs),
        ])

        measurer = PILTextMeasurer(self._get_fonts().fonts_for_language(language))
        rendered = await asyncio.to_thread(self._compose, background, lines, measurer)
        png = encode_png(rendered)

        await save_best_effort(storage, bucket, artifact_key(self.model_name, language.value, "after.png", ts), png)
        elapsed = now_ms() - t0
        logger.info(f"[to_image] done in {elapsed}ms")
        return ImageResult(uri_image=to_data_uri(png), paragraphs=len(paragraphs), time_ms=elapsed)

    def _compose(self, background: Image.Image, lines: List[LineSegment], measurer: PILTextMeasurer) -> Image.Image:
        placed: List[WordSegment] = layout_lines(lines, measurer, self._settings.DEFAULT_FONT_SIZE)
        return draw_texts(background, placed, measurer)

    async def translate_to_markdown(self, image_bytes: bytes, target_language: Union[str, Language, None]) -> MarkdownResult:
        t0 = now_ms()
        language = target_language if isinstance(target_language, Language) else Language.parse(target_language)
        image = decode_image(image_bytes)
        storage = self._get_storage()
        ts = int(time.time())
        bucket = self._settings.TO_MARKDOWN_BUCKET

        await save_best_effort(storage, bucket, artifact_key(self.model_name, language.value, "before.png", ts), image_bytes)

        annotation = await detect(self._get_ocr(), image_bytes)
        paragraphs = segment(to_word_segments(annotation))
        grid = align_with_spaces(image.width, image.height, paragraphs)
        logger.info(f"[to_markdown] aligned {len(paragraphs)} paragraphs into {grid.count(chr(10))} rows")

        orchestrator = self.orchestrator(language)
        markdown = await orchestrator.to_markdown(grid, encode_png(image))
        translated = await orchestrator.translate_markdown(markdown)

        await save_best_effort(
            storage, bucket, artifact_key(self.model_name, language.value, "after.md", ts), translated.encode("utf-8")
        )
        elapsed = now_ms() - t0
        logger.info(f"[to_markdown] done in {elapsed}ms")
        return MarkdownResult(markdown=translated, time_ms=elapsed)

    async def translate_text_from_image(
        self, image_bytes: bytes, target_language: Union[str, Language, None]
    ) -> TextFromImageResult:
        t0 = now_ms()
        language = target_language if isinstance(target_language, Language) else Language.parse(target_language)
        image = decode_image(image_bytes)

        annotation = await ocr_in_bands(self._get_ocr(), image_bytes, image, self._settings.OCR_BAND_MAX_HEIGHT)
        paragraphs: List[ParagraphSegment] = [p for p in segment(to_word_segments(annotation)) if has_letters(p)]
        logger.info(f"[text_from_image] {len(paragraphs)} paragraphs with letters")

        boxed = draw_paragraph_boxes(image, paragraphs)
        sentences = await self.orchestrator(language).translate_paragraph_texts(paragraphs)

        elapsed = now_ms() - t0
        logger.info(f"[text_from_image] done in {elapsed}ms")
        return TextFromImageResult(uri_image=to_data_uri(encode_png(boxed)), sentences=sentences, time_ms=elapsed)


_service: Optional[TranslateService] = None


def get_translate_service() -> TranslateService:
    """Get the shared TranslateService instance."""
    global _service
    if _service is None:
        _service = TranslateService()
    return _service
