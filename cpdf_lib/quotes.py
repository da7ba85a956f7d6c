# --- cpdf_lib/quotes.py ---
"""
cpdf_lib/quotes.py: Relocates a cited quote onto the rendered text fragments of
a page.

Only the first occurrence of the quote on the page is honored. A quote that
cannot be found (it crosses a hyphenation point differently, or was taken from
an adjacent page) yields an empty result rather than an error.
"""
import logging
import re
import threading

from .models import HighlightResult, TextFragment

log_quote = logging.getLogger("cpdf.quote")

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercases text and collapses whitespace runs to a single space."""
    return _WHITESPACE.sub(" ", (text or "").lower())


def normalize_quote(quote: str) -> str:
    return normalize_text(quote).strip()


def build_fragment_index(fragments):
    """Concatenates normalized fragment texts, recording [start, end) per fragment."""
    full_text, intervals = "", []
    for fragment in fragments:
        # An empty fragment still separates its neighbours.
        text = normalize_text(fragment.text) or " "
        start = len(full_text)
        full_text += text
        intervals.append((start, len(full_text), fragment))
    return full_text, intervals


def locate_quote(fragments, quote: str, previous: HighlightResult = None) -> HighlightResult:
    """Finds the fragments covering the first occurrence of the quote."""
    cleared = tuple(previous.marked) if previous else ()
    needle = normalize_quote(quote)
    if not needle or not fragments:
        return HighlightResult(cleared=cleared)

    full_text, intervals = build_fragment_index(fragments)
    match_start = full_text.find(needle)
    if match_start == -1:
        log_quote.info("Quote not found on page: '%s'", needle[:60])
        return HighlightResult(cleared=cleared)
    match_end = match_start + len(needle)

    marked = tuple(
        fragment.handle
        for start, end, fragment in intervals
        if max(0, min(match_end, end) - max(match_start, start)) > 0
    )
    log_quote.debug(
        "Quote matched at [%d, %d) across %d fragment(s).", match_start, match_end, len(marked)
    )
    return HighlightResult(marked=marked, scroll_target=marked[0], cleared=cleared)


def fragments_from_texts(texts):
    """Wraps plain strings as fragments whose handles are their positions."""
    return [TextFragment(handle=i, text=text) for i, text in enumerate(texts)]


class RenderGenerationTracker:
    """Tags page render attempts so late results for a stale page are dropped.

    The caller starts a render with ``begin_render`` and only applies a quote
    highlight whose generation is still the current one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._generation = 0
        self._target = None
        self._last_result = None

    @property
    def current_generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def current_target(self):
        with self._lock:
            return self._target

    def begin_render(self, doc_id, page) -> int:
        with self._lock:
            self._generation += 1
            self._target = (doc_id, page)
            log_quote.debug("Render generation %d for %s.", self._generation, self._target)
            return self._generation

    def is_current(self, generation) -> bool:
        with self._lock:
            return generation == self._generation

    def highlight_for_render(self, generation, fragments, quote):
        """Locates the quote for a finished render, or returns None if it is stale."""
        with self._lock:
            if generation != self._generation:
                log_quote.debug(
                    "Discarding highlight for stale generation %s (current %d).",
                    generation,
                    self._generation,
                )
                return None
            result = locate_quote(fragments, quote, previous=self._last_result)
            self._last_result = result
            return result
