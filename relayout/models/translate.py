"""
Pydantic models for translate API request/response.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class TranslateUrlRequest(BaseModel):
    """Request model for URL-based translation."""

    image_url: str = Field(..., description="URL of the image to translate")
    target_language: str = Field(default="en-US", description="Target language: en-US, ko-KR or ja-JP")


class ImageResultData(BaseModel):
    uri_image: str = Field(description="Translated image as a PNG data URI")
    paragraphs: int = Field(default=0, description="Number of paragraphs translated")
    time_ms: int = Field(default=0, description="Processing time in milliseconds")


class MarkdownResultData(BaseModel):
    markdown: str = Field(description="Translated markdown document")
    time_ms: int = Field(default=0, description="Processing time in milliseconds")


class Sentence(BaseModel):
    text: str = Field(description="Detected paragraph text")
    translated: str = Field(description="Translated paragraph text")


class TextFromImageResultData(BaseModel):
    uri_image: str = Field(description="Image with numbered paragraph boxes as a PNG data URI")
    sentences: List[Sentence] = Field(default_factory=list)
    time_ms: int = Field(default=0, description="Processing time in milliseconds")


class TranslateResponse(BaseModel):
    """Standard API response envelope."""

    success: bool = Field(description="Whether the request was successful")
    error: Optional[str] = Field(default=None, description="Error message if success=false")
    error_type: Optional[str] = Field(default=None, description="Error class name if success=false")


class ImageResponse(TranslateResponse):
    data: Optional[ImageResultData] = None


class MarkdownResponse(TranslateResponse):
    data: Optional[MarkdownResultData] = None


class TextFromImageResponse(TranslateResponse):
    data: Optional[TextFromImageResultData] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="ok")
    version: str = Field(default="0.1.0")
