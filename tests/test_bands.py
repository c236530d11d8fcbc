import asyncio
import io

import pytest
from PIL import Image

from relayout.core.bands import adjust_vertical_positions, merge_annotations, ocr_in_bands, split_points
from relayout.errors import CollaboratorFailure
from relayout.models.annotation import to_word_segments

from conftest import FakeOCR, annotation_of, annotation_word, png_bytes


def full_page():
    return annotation_of([
        [annotation_word("one", 0, 80, 50, 100)],
        [annotation_word("two", 0, 130, 50, 150)],
        [annotation_word("three", 0, 380, 50, 400)],
    ])


def band_handler(fail_bands=False):
    def handle(image_bytes):
        height = Image.open(io.BytesIO(image_bytes)).height
        if height == 400:
            return full_page()
        if fail_bands:
            raise RuntimeError("quota exceeded")
        if height == 150:
            return annotation_of([[annotation_word("top", 0, 10, 50, 30)]])
        return annotation_of([[annotation_word("bottom", 0, 20, 50, 40)]])
    return handle


def test_split_points_cut_at_paragraph_bottoms():
    assert split_points(full_page(), 400) == [0, 150, 400]


def test_split_points_single_band_for_short_images():
    annotation = annotation_of([[annotation_word("a", 0, 0, 10, 50)]])
    assert split_points(annotation, 120) == [0, 120]


def test_adjust_and_merge_keep_band_order():
    a = annotation_of([[annotation_word("a", 0, 0, 10, 10)]])
    b = annotation_of([[annotation_word("b", 0, 0, 10, 10)]])
    adjust_vertical_positions(b, 50)
    merged = merge_annotations([a, b])
    assert [w.text for w in merged.words()] == ["a", "b"]
    assert list(merged.words())[1].bounding_box.bottom == 60


def test_ocr_in_bands_restores_offsets():
    image_bytes = png_bytes(100, 400)
    image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    ocr = FakeOCR(handler=band_handler())

    annotation = asyncio.run(ocr_in_bands(ocr, image_bytes, image))

    words = to_word_segments(annotation)
    assert [w.text for w in words] == ["top", "bottom"]
    assert words[0].position.top == 10
    assert words[1].position.top == 170
    assert len(ocr.calls) == 3


def test_ocr_in_bands_without_cut_is_single_call():
    image_bytes = png_bytes(100, 150)
    image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    ocr = FakeOCR(result=annotation_of([[annotation_word("only", 0, 0, 50, 20)]]))

    annotation = asyncio.run(ocr_in_bands(ocr, image_bytes, image))

    assert [w.text for w in annotation.words()] == ["only"]
    assert len(ocr.calls) == 1


def test_band_failure_aborts_detection():
    image_bytes = png_bytes(100, 400)
    image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    ocr = FakeOCR(handler=band_handler(fail_bands=True))

    with pytest.raises(CollaboratorFailure):
        asyncio.run(ocr_in_bands(ocr, image_bytes, image))
