# --- cpdf_lib/models.py ---
"""
cpdf_lib/models.py: Data models shared by the layout reconstructor, the
citation parser and the quote locator.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

DEFAULT_GLYPH_HEIGHT = 10.0


@dataclass(frozen=True)
class GlyphRun:
    """One positioned text fragment of a page, as emitted by the PDF parser.

    ``x``/``y`` are the fragment's origin in PDF user space (y grows upwards),
    ``width``/``height`` its box dimensions.
    """

    text: str
    x: float
    y: float
    height: float
    width: float

    @property
    def glyph_height(self) -> float:
        """Height used by the layout thresholds; falls back for degenerate runs."""
        if not self.height or self.height <= 0:
            return DEFAULT_GLYPH_HEIGHT
        return self.height

    @property
    def right(self) -> float:
        return self.x + (self.width or 0)


@dataclass(frozen=True)
class TextSpan:
    """A run of ordinary response prose."""

    text: str
    type: str = field(default="text", init=False)

    def to_dict(self) -> dict:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class Citation:
    """A structured reference to a document page, optionally with a quote.

    ``doc_index`` is 1-based. ``valid`` is derived from the library size at
    parse time and is never persisted.
    """

    doc_index: int
    page: int
    quote: Optional[str] = None
    valid: bool = False
    type: str = field(default="citation", init=False)

    @property
    def label(self) -> str:
        return f"{self.doc_index}:{self.page}"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "doc_index": self.doc_index,
            "page": self.page,
            "quote": self.quote,
            "valid": self.valid,
        }


CitationSpan = Union[TextSpan, Citation]


@dataclass(frozen=True)
class TextFragment:
    """A rendered on-page text fragment: an opaque handle plus its plain text."""

    handle: Any
    text: str


@dataclass(frozen=True)
class HighlightResult:
    """Fragments to mark for one quote request.

    ``cleared`` holds the handles of the previous result, which the rendering
    layer must un-mark before applying ``marked``.
    """

    marked: tuple = ()
    scroll_target: Any = None
    cleared: tuple = ()

    @property
    def found(self) -> bool:
        return bool(self.marked)

    def to_dict(self) -> dict:
        return {
            "marked": list(self.marked),
            "scroll_target": self.scroll_target,
            "cleared": list(self.cleared),
        }


@dataclass
class LibraryDocument:
    """A document of the research library and its reconstructed page texts."""

    id: int
    name: str
    pages: List[str] = field(default_factory=list)
    pdf_path: Optional[str] = None

    @property
    def text(self) -> str:
        return join_document_text(self.pages)


def join_document_text(pages: List[str]) -> str:
    """Joins the page texts of one document into its reflow text."""
    return "\n\n".join(pages)
