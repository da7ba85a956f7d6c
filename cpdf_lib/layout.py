# --- cpdf_lib/layout.py ---
"""
cpdf_lib/layout.py: Rebuilds reading-order page text from positioned glyph runs.

All thresholds are fractions of the *current* run's glyph height, so the
heuristic does not depend on the page resolution.
"""
import logging
from functools import cmp_to_key

from .models import GlyphRun

log_layout = logging.getLogger("cpdf.layout")

SAME_ROW_FACTOR = 0.5
SAME_LINE_FACTOR = 0.6
PARAGRAPH_FACTOR = 1.6
WORD_GAP_FACTOR = 0.2

SAME_LINE, LINE_BREAK, PARAGRAPH_BREAK = "same_line", "line_break", "paragraph_break"


def _compare_runs(a: GlyphRun, b: GlyphRun) -> int:
    """Top of page first; left to right within a row."""
    if abs(a.y - b.y) > a.glyph_height * SAME_ROW_FACTOR:
        return (b.y > a.y) - (b.y < a.y)
    return (a.x > b.x) - (a.x < b.x)


def sort_reading_order(runs):
    """Returns the runs sorted into a single top-to-bottom, left-to-right sequence."""
    return sorted(runs, key=cmp_to_key(_compare_runs))


def classify_gap(dy: float, height: float) -> str:
    """Classifies the vertical distance between two consecutive runs."""
    if dy <= height * SAME_LINE_FACTOR:
        return SAME_LINE
    if dy <= height * PARAGRAPH_FACTOR:
        return LINE_BREAK
    return PARAGRAPH_BREAK


def _dehyphenate(text: str):
    """Strips a trailing wrap hyphen, returning None if there is none."""
    stripped = text.rstrip()
    if stripped.endswith("-"):
        return stripped[:-1]
    return None


def reconstruct_page_text(runs) -> str:
    """Joins the glyph runs of one page into reading-order text.

    Never reorders run content and never drops a run; only the joiners between
    runs (space, nothing, or a blank line) are chosen here.
    """
    if not runs:
        return ""

    page_text = ""
    last_y = last_x = None
    for run in sort_reading_order(runs):
        text = run.text or ""
        if last_y is not None:
            height = run.glyph_height
            gap = classify_gap(abs(run.y - last_y), height)
            if gap == SAME_LINE:
                at_seam = page_text[-1:].isspace() or text[:1].isspace()
                if run.x - last_x > height * WORD_GAP_FACTOR and not at_seam:
                    page_text += " "
            else:
                joined = _dehyphenate(page_text)
                if joined is not None:
                    log_layout.debug("De-hyphenating across %s before '%s'", gap, text[:20])
                    page_text = joined
                elif gap == LINE_BREAK:
                    page_text += " "
                else:
                    page_text += "\n\n"
        page_text += text
        last_y, last_x = run.y, run.right
    return page_text


def reconstruct_document_text(pages) -> list[str]:
    """Reconstructs every page independently; returns one string per page."""
    page_texts = [reconstruct_page_text(runs) for runs in pages]
    log_layout.info(
        "Reconstructed %d pages (%d characters).",
        len(page_texts),
        sum(len(t) for t in page_texts),
    )
    return page_texts
