# --- cpdf_lib/citations.py ---
"""
cpdf_lib/citations.py: Parses citation markers out of model responses.

Marker syntax: ``[docIndex:page]`` or ``[docIndex:page | "quote"]`` (single or
double quotes, free whitespace around every token). Rendering is an explicit
two-pass pipeline: citations are swapped for opaque placeholder tokens, the
shielded text is rendered as Markdown, then every token is replaced with an
interactive citation button.
"""
import html
import logging
import re
import uuid

from markdown_it import MarkdownIt

from .models import Citation, TextSpan

log_cite = logging.getLogger("cpdf.cite")

CITATION_PATTERN = re.compile(
    r"""\[\s*(\d{1,9})\s*:\s*(\d{1,9})\s*(?:\|\s*(?:"([^"]+)"|'([^']+)')\s*)?\]"""
)
TOKEN_PREFIX = "CITATIONTOKEN"

VALID_STYLE = "citation-valid"
INVALID_STYLE = "citation-invalid"


def is_valid_doc_index(doc_index: int, library_size: int) -> bool:
    return 1 <= doc_index <= library_size


def _citation_from_match(match, library_size: int) -> Citation:
    doc_index, page = int(match.group(1)), int(match.group(2))
    quote = match.group(3) if match.group(3) is not None else match.group(4)
    quote = quote.strip() if quote else None
    return Citation(
        doc_index=doc_index,
        page=page,
        quote=quote or None,
        valid=is_valid_doc_index(doc_index, library_size),
    )


def parse_citations(text: str, library_size: int) -> list:
    """Splits response text into TextSpan and Citation spans.

    Total and stateless: safe to call on every prefix of a streamed response.
    An unterminated trailing marker stays plain text until it is complete.
    """
    spans, cursor = [], 0
    text = text or ""
    for match in CITATION_PATTERN.finditer(text):
        if match.start() > cursor:
            spans.append(TextSpan(text[cursor : match.start()]))
        spans.append(_citation_from_match(match, library_size))
        cursor = match.end()
    if cursor < len(text):
        spans.append(TextSpan(text[cursor:]))
    return spans


def resolve_citation_target(doc_index, page, quote, library_size):
    """Returns the (doc_index, page, quote) jump target, or None if unresolvable."""
    try:
        doc_index, page = int(doc_index), int(page)
    except (TypeError, ValueError):
        return None
    if not is_valid_doc_index(doc_index, library_size) or page < 1:
        log_cite.info("Citation %s:%s does not resolve to a library page.", doc_index, page)
        return None
    return doc_index, page, (quote or None)


class CitationRenderer:
    """Renders a model response to HTML with citation buttons."""

    def __init__(self, document_names=None):
        self.document_names = list(document_names or [])
        self.md = (
            MarkdownIt("commonmark", {"breaks": True, "html": False})
            .enable("table")
            .enable("strikethrough")
        )

    @property
    def library_size(self) -> int:
        return len(self.document_names)

    def _new_token(self, citation: Citation, text: str, issued) -> str:
        while True:
            token = (
                f"{TOKEN_PREFIX}{citation.doc_index}X{citation.page}X{uuid.uuid4().hex[:9]}"
            )
            if token not in issued and token not in text:
                return token

    def extract(self, text: str):
        """Pass 1: replaces every citation with a unique placeholder token."""
        citations = {}

        def _substitute(match):
            citation = _citation_from_match(match, self.library_size)
            token = self._new_token(citation, text, citations)
            citations[token] = citation
            return token

        shielded = CITATION_PATTERN.sub(_substitute, text or "")
        log_cite.debug("Shielded %d citation(s) from the Markdown renderer.", len(citations))
        return shielded, citations

    def render_markdown(self, shielded_text: str) -> str:
        """Pass 2: renders the placeholder-substituted text."""
        return self.md.render(shielded_text)

    def citation_button(self, citation: Citation) -> str:
        if citation.valid:
            name = self.document_names[citation.doc_index - 1]
            tooltip = f"Jump to: {name} (Page {citation.page})"
            if citation.quote:
                tooltip += f'\nQuote: "{citation.quote}"'
            style = VALID_STYLE
        else:
            tooltip = f"Document #{citation.doc_index} is missing from library"
            style = INVALID_STYLE
        quote_attr = (
            f' data-citation-quote="{html.escape(citation.quote, quote=True)}"'
            if citation.quote
            else ""
        )
        return (
            f'<button data-citation-doc="{citation.doc_index}" '
            f'data-citation-page="{citation.page}"{quote_attr} '
            f'class="citation-btn {style}" title="{html.escape(tooltip, quote=True)}">'
            f"REF {citation.label}</button>"
        )

    def inject(self, rendered_html: str, citations: dict) -> str:
        """Pass 3: replaces each placeholder token with its citation button."""
        for token, citation in citations.items():
            if token not in rendered_html:
                log_cite.warning("Placeholder for citation %s lost in rendering.", citation.label)
                continue
            rendered_html = rendered_html.replace(token, self.citation_button(citation))
        return rendered_html

    def render(self, text: str) -> str:
        shielded, citations = self.extract(text)
        return self.inject(self.render_markdown(shielded), citations)


def render_response_html(text: str, document_names=None) -> str:
    """Runs the extract / render / inject pipeline on one response."""
    return CitationRenderer(document_names).render(text)
