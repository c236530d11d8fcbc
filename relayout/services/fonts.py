"""
Font lookup per target language and weight, plus Pillow-based measuring.

Layout of FONT_DIR:
    <FONT_DIR>/English/SansSerif-Regular.ttf
    <FONT_DIR>/English/SansSerif-SemiBold.ttf
    <FONT_DIR>/English/SansSerif-Bold.ttf
    <FONT_DIR>/Korean/...
    <FONT_DIR>/Japanese/...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Tuple

from PIL import Image, ImageDraw, ImageFont

from relayout.core.language import Language
from relayout.models.segment import BOLD_WEIGHT, SEMIBOLD_WEIGHT

logger = logging.getLogger(__name__)

LANGUAGE_DIRS = {
    Language.EN_US: "English",
    Language.KO_KR: "Korean",
    Language.JA_JP: "Japanese",
}

FONT_FILES = {
    "regular": "SansSerif-Regular.ttf",
    "semi_bold": "SansSerif-SemiBold.ttf",
    "bold": "SansSerif-Bold.ttf",
}


def discover_default_fonts() -> List[str]:
    candidates = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
        "/System/Library/Fonts/Supplemental/Arial.ttf",
        "/System/Library/Fonts/Supplemental/Helvetica.ttf",
        "/Library/Fonts/Arial.ttf",
    ]
    return [p for p in candidates if os.path.exists(p)]


@dataclass(frozen=True)
class FontsByWeight:
    regular: str
    semi_bold: str
    bold: str

    def font_for_weight(self, weight: int) -> str:
        if weight >= BOLD_WEIGHT:
            return self.bold
        if weight >= SEMIBOLD_WEIGHT:
            return self.semi_bold
        return self.regular


class FontProvider:
    def __init__(self, font_dir: str = "fonts") -> None:
        self.font_dir = font_dir
        self._cache: Dict[Language, FontsByWeight] = {}

    def fonts_for_language(self, language: Language) -> FontsByWeight:
        if language in self._cache:
            return self._cache[language]

        directory = os.path.join(self.font_dir, LANGUAGE_DIRS.get(language, "English"))
        paths = {k: os.path.join(directory, f) for k, f in FONT_FILES.items()}
        if not os.path.exists(paths["regular"]):
            defaults = discover_default_fonts()
            # "" selects Pillow's bundled font
            fallback = defaults[0] if defaults else ""
            logger.warning(f"Fonts for {language.value} missing in {directory}, using {fallback or 'Pillow default'}")
            paths = {k: fallback for k in FONT_FILES}
        else:
            # Missing weights fall back to regular
            paths = {k: (p if os.path.exists(p) else paths["regular"]) for k, p in paths.items()}

        fonts = FontsByWeight(**paths)
        self._cache[language] = fonts
        return fonts


class FontManager:
    """Loaded FreeType faces keyed by (path, size)."""

    def __init__(self) -> None:
        self._cache: Dict[Tuple[str, float], ImageFont.FreeTypeFont] = {}

    def get(self, path: str, size: float) -> ImageFont.FreeTypeFont:
        size = max(1.0, round(float(size), 2))
        key = (path, size)
        if key not in self._cache:
            if path:
                self._cache[key] = ImageFont.truetype(path, size=size)
            else:
                self._cache[key] = ImageFont.load_default(size=size)
        return self._cache[key]


def measure_line(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.FreeTypeFont) -> Tuple[int, int]:
    bb = draw.textbbox((0, 0), text, font=font)
    return int(bb[2] - bb[0]), int(bb[3] - bb[1])


class PILTextMeasurer:
    """TextMeasurer over one language's fonts."""

    def __init__(self, fonts: FontsByWeight, manager: FontManager = None) -> None:
        self.fonts = fonts
        self.manager = manager or FontManager()
        self._draw = ImageDraw.Draw(Image.new("RGB", (1, 1)))

    def font(self, size: float, font_weight: int) -> ImageFont.FreeTypeFont:
        return self.manager.get(self.fonts.font_for_weight(font_weight), size)

    def measure(self, text: str, size: float, font_weight: int) -> Tuple[float, float]:
        if not text:
            return (0.0, 0.0)
        # Advance width keeps trailing spaces, which textbbox drops.
        font = self.font(size, font_weight)
        _, h = measure_line(self._draw, text, font)
        return (float(font.getlength(text)), float(h))
