"""
Translation API endpoints.
"""

import logging
from typing import Annotated, Awaitable, Callable, Type, TypeVar

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from relayout.errors import InvalidInput, RelayoutError
from relayout.models.translate import (
    HealthResponse,
    ImageResponse,
    ImageResultData,
    MarkdownResponse,
    MarkdownResultData,
    Sentence,
    TextFromImageResponse,
    TextFromImageResultData,
    TranslateResponse,
    TranslateUrlRequest,
)
from relayout.services.translate_service import TranslateService, get_translate_service

logger = logging.getLogger(__name__)

router = APIRouter()

R = TypeVar("R", bound=TranslateResponse)


async def _read_image(file: UploadFile) -> bytes:
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {file.content_type}. Expected image/*",
        )
    return await file.read()


async def _respond(response_cls: Type[R], run: Callable[[], Awaitable[object]]) -> R:
    """InvalidInput becomes HTTP 400; any other failure an error envelope."""
    try:
        return response_cls(success=True, data=await run())
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RelayoutError as e:
        logger.error(f"Request failed with {type(e).__name__}: {e}")
        return response_cls(success=False, error=str(e), error_type=type(e).__name__)
    except Exception as e:
        logger.exception(f"Unexpected {type(e).__name__} while handling request: {e}")
        return response_cls(success=False, error=str(e), error_type=type(e).__name__)


def _image_data(result) -> ImageResultData:
    return ImageResultData(uri_image=result.uri_image, paragraphs=result.paragraphs, time_ms=result.time_ms)


def _markdown_data(result) -> MarkdownResultData:
    return MarkdownResultData(markdown=result.markdown, time_ms=result.time_ms)


def _text_data(result) -> TextFromImageResultData:
    return TextFromImageResultData(
        uri_image=result.uri_image,
        sentences=[Sentence(text=t, translated=tr) for t, tr in result.sentences],
        time_ms=result.time_ms,
    )


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.
    Returns service status and version.
    """
    return HealthResponse(status="ok", version="0.1.0")


@router.post(
    "/api/v1/translate/image",
    response_model=ImageResponse,
    tags=["Translation"],
    summary="Translate an image in place (multipart upload)",
    description="Detect text, translate it and re-render it over the cleaned background in the original layout.",
)
async def translate_to_image(
    file: Annotated[UploadFile, File(description="Image file to translate")],
    target_language: Annotated[str, Form()] = "en-US",
    service: TranslateService = Depends(get_translate_service),
) -> ImageResponse:
    """
    The image is processed through:
    1. document OCR with per-word style
    2. paragraph segmentation and style unification
    3. text removal and translation (concurrently)
    4. font fitting and rendering in the original positions
    """
    image_bytes = await _read_image(file)

    async def run():
        return _image_data(await service.translate_to_image(image_bytes, target_language))

    return await _respond(ImageResponse, run)


@router.post(
    "/api/v1/translate/image/url",
    response_model=ImageResponse,
    tags=["Translation"],
    summary="Translate an image in place from URL",
)
async def translate_to_image_from_url(
    request: TranslateUrlRequest,
    service: TranslateService = Depends(get_translate_service),
) -> ImageResponse:
    async def run():
        image_bytes = await service.download_image(request.image_url)
        return _image_data(await service.translate_to_image(image_bytes, request.target_language))

    return await _respond(ImageResponse, run)


@router.post(
    "/api/v1/translate/markdown",
    response_model=MarkdownResponse,
    tags=["Translation"],
    summary="Convert an image to translated markdown",
)
async def translate_to_markdown(
    file: Annotated[UploadFile, File(description="Image file to convert")],
    target_language: Annotated[str, Form()] = "en-US",
    service: TranslateService = Depends(get_translate_service),
) -> MarkdownResponse:
    image_bytes = await _read_image(file)

    async def run():
        return _markdown_data(await service.translate_to_markdown(image_bytes, target_language))

    return await _respond(MarkdownResponse, run)


@router.post(
    "/api/v1/translate/text",
    response_model=TextFromImageResponse,
    tags=["Translation"],
    summary="Number the paragraphs of an image and translate their text",
)
async def translate_text_from_image(
    file: Annotated[UploadFile, File(description="Image file to read")],
    target_language: Annotated[str, Form()] = "en-US",
    service: TranslateService = Depends(get_translate_service),
) -> TextFromImageResponse:
    image_bytes = await _read_image(file)

    async def run():
        return _text_data(await service.translate_text_from_image(image_bytes, target_language))

    return await _respond(TextFromImageResponse, run)
