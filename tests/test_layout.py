import itertools

import pytest

from cpdf_lib.layout import (
    LINE_BREAK,
    PARAGRAPH_BREAK,
    SAME_LINE,
    classify_gap,
    reconstruct_document_text,
    reconstruct_page_text,
    sort_reading_order,
)
from cpdf_lib.models import GlyphRun, join_document_text


def run(text, x, y, width=40, height=10):
    return GlyphRun(text=text, x=x, y=y, height=height, width=width)


def test_empty_page_is_empty_string():
    assert reconstruct_page_text([]) == ""


def test_same_line_gap_inserts_space():
    runs = [run("Hello", 0, 700), run("World", 46, 700)]
    assert reconstruct_page_text(runs) == "Hello World"


def test_same_line_small_gap_joins_directly():
    runs = [run("Hello", 0, 700), run("World", 41, 700)]
    assert reconstruct_page_text(runs) == "HelloWorld"


def test_same_line_existing_whitespace_is_not_doubled():
    assert reconstruct_page_text([run("Hello ", 0, 700), run("World", 46, 700)]) == "Hello World"
    assert reconstruct_page_text([run("Hello", 0, 700), run(" World", 46, 700)]) == "Hello World"


def test_line_break_joins_with_single_space():
    runs = [run("first line", 0, 700), run("second line", 0, 690)]
    assert reconstruct_page_text(runs) == "first line second line"


def test_paragraph_break_inserts_blank_line():
    runs = [run("Paragraph one.", 0, 700), run("Paragraph two.", 0, 680)]
    assert reconstruct_page_text(runs) == "Paragraph one.\n\nParagraph two."


def test_dehyphenation_across_line_break():
    runs = [run("inter-", 0, 700), run("national", 0, 690)]
    assert reconstruct_page_text(runs) == "international"


def test_dehyphenation_across_paragraph_break():
    runs = [run("inter-", 0, 700), run("national", 0, 670)]
    assert reconstruct_page_text(runs) == "international"


def test_dehyphenation_merges_real_compounds_at_wrap():
    # Known limitation: wrap hyphens and compound hyphens look the same.
    runs = [run("well-", 0, 700), run("being", 0, 690)]
    assert reconstruct_page_text(runs) == "wellbeing"


def test_hyphen_on_same_line_is_kept():
    runs = [run("self-", 0, 700, width=25), run("aware", 30, 700)]
    assert reconstruct_page_text(runs) == "self- aware"


@pytest.mark.parametrize(
    "dy, expected",
    [(0, SAME_LINE), (6, SAME_LINE), (6.5, LINE_BREAK), (16, LINE_BREAK), (16.5, PARAGRAPH_BREAK)],
)
def test_classify_gap_thresholds(dy, expected):
    assert classify_gap(dy, 10) == expected


def test_thresholds_scale_with_glyph_height():
    small = [run("a", 0, 100, height=10), run("b", 0, 80, height=10)]
    large = [run("a", 0, 100, height=20), run("b", 0, 80, height=20)]
    assert reconstruct_page_text(small) == "a\n\nb"
    assert reconstruct_page_text(large) == "a b"


def test_reading_order_is_restored_from_scrambled_runs():
    ordered = [
        run("Title", 0, 750),
        run("left", 0, 700),
        run("right", 100, 700),
        run("next", 0, 690),
    ]
    expected = reconstruct_page_text(ordered)
    assert expected == "Title\n\nleft right next"
    for perm in itertools.permutations(ordered):
        assert reconstruct_page_text(list(perm)) == expected


def test_sort_reading_order_top_to_bottom_then_left_to_right():
    runs = [run("c", 0, 600), run("b", 50, 700), run("a", 0, 700)]
    assert [r.text for r in sort_reading_order(runs)] == ["a", "b", "c"]


def test_garbage_coordinates_keep_every_run():
    runs = [
        run("alpha", float("1e9"), -5, width=0, height=0),
        run("beta", -3, 1e6, width=-1, height=0),
        run("gamma", 0, 0, width=0, height=-2),
    ]
    text = reconstruct_page_text(runs)
    for piece in ("alpha", "beta", "gamma"):
        assert piece in text


def test_document_text_joins_pages_with_blank_line():
    pages = [[run("one", 0, 700)], [], [run("three", 0, 700)]]
    texts = reconstruct_document_text(pages)
    assert texts == ["one", "", "three"]
    assert join_document_text(texts) == "one\n\n\n\nthree"
