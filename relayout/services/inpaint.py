"""
Background removal: erase text regions from an image (size-safe backends).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import cv2
import numpy as np
from PIL import Image

from relayout.core.geometry import Position
from relayout.errors import CollaboratorFailure
from relayout.utils.image_utils import bgr_to_pil, pil_to_bgr, sanitize_mask

logger = logging.getLogger(__name__)

MASK_PADDING = 8


def build_mask(size: tuple, regions: Sequence[Position], padding: int = MASK_PADDING) -> np.ndarray:
    """Rectangular 0/255 mask of the regions grown by padding and clamped to the image."""
    w, h = size
    mask = np.zeros((h, w), dtype=np.uint8)
    for r in regions:
        x0 = max(0, r.left - padding)
        y0 = max(0, r.top - padding)
        x1 = min(w, r.right + padding)
        y1 = min(h, r.bottom + padding)
        if x1 > x0 and y1 > y0:
            mask[y0:y1, x0:x1] = 255
    return mask


class BaseInpaint:
    padding: int = MASK_PADDING

    def name(self) -> str:
        raise NotImplementedError

    def inpaint(self, bgr: np.ndarray, mask: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _remove(self, image: Image.Image, regions: Sequence[Position]) -> Image.Image:
        if not regions:
            return image.copy()
        bgr = pil_to_bgr(image)
        mask = build_mask(image.size, regions, self.padding)
        return bgr_to_pil(self.inpaint(bgr, mask))

    async def remove_regions(self, image: Image.Image, regions: Sequence[Position]) -> Image.Image:
        try:
            return await asyncio.to_thread(self._remove, image, list(regions))
        except Exception as e:
            logger.error(f"Inpainting with {self.name()} failed: {e}")
            raise CollaboratorFailure(f"inpainting failed: {e}") from e


class NoopInpaint(BaseInpaint):
    def name(self) -> str:
        return "none"

    def inpaint(self, bgr: np.ndarray, mask: np.ndarray) -> np.ndarray:
        return bgr.copy()


class OpenCVInpaint(BaseInpaint):
    def __init__(self, radius: int = 3, padding: int = MASK_PADDING) -> None:
        self.radius = int(radius)
        self.padding = int(padding)

    def name(self) -> str:
        return "opencv"

    def inpaint(self, bgr: np.ndarray, mask: np.ndarray) -> np.ndarray:
        m = sanitize_mask(mask, bgr.shape[:2])
        out = cv2.inpaint(bgr, m, self.radius, cv2.INPAINT_TELEA)
        if out.shape[:2] != bgr.shape[:2]:
            out = cv2.resize(out, (bgr.shape[1], bgr.shape[0]), interpolation=cv2.INTER_LINEAR)
        return out


class LamaInpaint(BaseInpaint):
    def __init__(self, device: str = "auto", padding: int = MASK_PADDING) -> None:
        self.padding = int(padding)
        try:
            import torch  # type: ignore
            from simple_lama_inpainting import SimpleLama  # type: ignore
        except Exception as e:
            raise RuntimeError("LaMa backend requires: pip install simple-lama-inpainting torch") from e
        self._torch = torch
        self.device = self._select_device(device)
        try:
            self._lama = SimpleLama(device=self.device)
        except Exception as e:
            logger.warning(f"LaMa failed on {self.device} ({e}), retrying on cpu")
            self.device = "cpu"
            self._lama = SimpleLama(device="cpu")

    def _select_device(self, device: str) -> str:
        device = (device or "auto").lower()
        torch = self._torch
        cuda = getattr(torch, "cuda", None) and torch.cuda.is_available()
        mps = getattr(torch.backends, "mps", None) and torch.backends.mps.is_available()
        if device == "cuda":
            return "cuda" if cuda else "cpu"
        if device == "mps":
            return "mps" if mps else "cpu"
        if device == "cpu":
            return "cpu"
        if cuda:
            return "cuda"
        if mps:
            return "mps"
        return "cpu"

    def name(self) -> str:
        return "lama"

    def inpaint(self, bgr: np.ndarray, mask: np.ndarray) -> np.ndarray:
        m = sanitize_mask(mask, bgr.shape[:2])
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        out = self._lama(Image.fromarray(rgb), Image.fromarray(m))
        out_bgr = cv2.cvtColor(np.array(out), cv2.COLOR_RGB2BGR)
        # LaMa pads to a multiple of 8; crop/resize back to the input size
        if out_bgr.shape[:2] != bgr.shape[:2]:
            out_bgr = cv2.resize(out_bgr, (bgr.shape[1], bgr.shape[0]), interpolation=cv2.INTER_LINEAR)
        return out_bgr


def build_inpainter(name: str, lama_device: str = "auto", radius: int = 3, padding: int = MASK_PADDING) -> BaseInpaint:
    name = (name or "opencv").lower()
    if name == "none":
        return NoopInpaint()
    if name == "opencv":
        return OpenCVInpaint(radius=radius, padding=padding)
    if name == "lama":
        return LamaInpaint(device=lama_device, padding=padding)
    raise ValueError(f"Unknown inpaint backend: {name}")
