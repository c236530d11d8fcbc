import pytest

from relayout.core import color
from relayout.core.style_unifier import should_combine_words, unify, unify_paragraph

from conftest import line, paragraph, styled

RED = (1.0, 0.0, 0.0)
BLUE = (0.0, 0.0, 1.0)
WHITE = (1.0, 1.0, 1.0)


def test_distance_identity_and_range():
    assert color.distance(RED, RED) == pytest.approx(0.0)
    assert color.distance(color.BLACK, WHITE) == pytest.approx(1.0, abs=0.01)


def test_near_black_and_grayscale():
    assert color.is_near_black((0.05, 0.05, 0.05))
    assert color.is_near_black((0.52, 0.5, 0.5))
    assert not color.is_near_black(RED)
    assert color.is_grayscale((0.3, 0.32, 0.31))
    assert not color.is_grayscale(BLUE)


def test_blend_is_weighted():
    assert color.blend(color.BLACK, WHITE, 1, 1) == pytest.approx((0.5, 0.5, 0.5))
    assert color.blend(color.BLACK, WHITE, 3, 1) == pytest.approx((0.25, 0.25, 0.25))


def test_similar_red_words_merge():
    a = styled("Hello", 0, 0, 50, 20, RED)
    b = styled("World", 55, 0, 105, 20, RED)
    assert should_combine_words(a, b)


def test_red_and_blue_words_stay_apart():
    a = styled("Hello", 0, 0, 50, 20, RED)
    b = styled("World", 55, 0, 105, 20, BLUE)
    assert not should_combine_words(a, b)
    result = unify_paragraph(paragraph(line(a, b)))
    assert [w.text for w in result.words] == ["Hello", "World"]


def test_symbol_between_same_colored_words_is_absorbed():
    result = unify_paragraph(paragraph(line(
        styled("Hello", 0, 0, 50, 20, RED),
        styled(",", 50, 0, 55, 20, BLUE),
        styled("World", 58, 0, 108, 20, RED),
    )))
    assert [w.text for w in result.words] == ["Hello,World"]
    merged = result.words[0]
    assert merged.style.text_color == pytest.approx(RED, abs=1e-6)
    assert merged.position.left == 0 and merged.position.right == 108


def test_black_run_merges_regardless_of_height():
    result = unify_paragraph(paragraph(line(
        styled("Hello", 0, 0, 50, 10),
        styled("World", 55, 0, 105, 30),
    )))
    assert len(result.words) == 1
    assert result.words[0].style.height == 20
    assert result.words[0].style.weight == 2


def test_next_line_adopts_close_style():
    first = line(styled("Hello", 0, 0, 50, 20, RED))
    second = line(styled("World", 0, 25, 50, 45, (0.99, 0.0, 0.0)))
    result = unify_paragraph(paragraph(first, second))
    assert result.lines[1].words[0].style == result.lines[0].words[0].style
    assert result.lines[1].words[0].text == "World"


def test_next_line_keeps_distinct_style():
    first = line(styled("Hello", 0, 0, 50, 20, RED))
    second = line(styled("World", 0, 25, 50, 45, BLUE))
    result = unify_paragraph(paragraph(first, second))
    assert result.lines[1].words[0].style.text_color == BLUE


def test_paragraphs_do_not_exchange_styles():
    p1 = paragraph(line(styled("Red", 0, 0, 50, 20, RED)))
    p2 = paragraph(line(styled("Blue", 0, 100, 50, 120, BLUE)))
    result = unify([p1, p2])
    assert result[0].words[0].style.text_color == RED
    assert result[1].words[0].style.text_color == BLUE
