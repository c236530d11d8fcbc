"""
Image decoding/encoding helpers shared by the pipelines and adapters.
"""

import base64
import io
import logging
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from relayout.errors import InvalidInput

logger = logging.getLogger(__name__)

# AVIF/HEIF input support
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    logger.info("AVIF/HEIF support enabled")
except ImportError:
    logger.warning("pillow-heif not installed, AVIF/HEIF input unavailable")


def decode_image(image_bytes: bytes) -> Image.Image:
    """
    Open image bytes as an RGB PIL image.

    Supported input formats: JPEG, PNG, GIF, BMP, WEBP, AVIF, HEIF.
    Transparent images are flattened onto white.
    """
    if not image_bytes:
        raise InvalidInput("empty image")
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.error(f"Failed to decode image: {e}")
        raise InvalidInput(f"failed to decode image: {e}") from e

    logger.info(f"Image format: {img.format or 'UNKNOWN'}, size: {img.size}, mode: {img.mode}")
    if img.width <= 0 or img.height <= 0:
        raise InvalidInput("image has no pixels")

    if img.mode in ("RGBA", "LA", "P"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")
    return img


def encode_png(img: Image.Image) -> bytes:
    output = io.BytesIO()
    img.save(output, format="PNG")
    return output.getvalue()


def to_data_uri(png_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64," + base64.b64encode(png_bytes).decode("utf-8")


def pil_to_bgr(img: Image.Image) -> np.ndarray:
    return cv2.cvtColor(np.array(img.convert("RGB")), cv2.COLOR_RGB2BGR)


def bgr_to_pil(bgr: np.ndarray) -> Image.Image:
    return Image.fromarray(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))


def bytes_to_bgr(image_bytes: bytes) -> np.ndarray:
    return pil_to_bgr(decode_image(image_bytes))


def median_rgb(pixels_rgb: np.ndarray) -> Tuple[int, int, int]:
    if pixels_rgb.size == 0:
        return (255, 255, 255)
    med = np.median(pixels_rgb.reshape(-1, 3), axis=0)
    return (int(med[0]), int(med[1]), int(med[2]))


def sanitize_mask(mask: np.ndarray, target_hw: Tuple[int, int]) -> np.ndarray:
    """Ensure mask is uint8, single-channel, 0/255 and the same HxW as target."""
    th, tw = target_hw
    if mask is None:
        return np.zeros((th, tw), dtype=np.uint8)

    m = mask
    if m.ndim == 3:
        m = cv2.cvtColor(m, cv2.COLOR_BGR2GRAY) if m.shape[2] == 3 else m[:, :, 0]

    if m.shape[0] != th or m.shape[1] != tw:
        m = cv2.resize(m, (tw, th), interpolation=cv2.INTER_NEAREST)

    if m.dtype != np.uint8:
        m = np.clip(m, 0, 255).astype(np.uint8)

    return (m > 0).astype(np.uint8) * 255


def stroke_mask(bgr_roi: np.ndarray) -> np.ndarray:
    """
    uint8 mask (0/255) of glyph strokes inside a word crop.

    Otsu splits the crop into two intensity classes; the smaller class is
    taken as ink, which holds for both dark-on-light and light-on-dark text.
    """
    gray = cv2.cvtColor(bgr_roi, cv2.COLOR_BGR2GRAY)
    _, m = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    if np.count_nonzero(m) > m.size / 2:
        m = cv2.bitwise_not(m)
    return m
