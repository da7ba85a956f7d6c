# --- cpdf_lib/extractor.py ---
"""
cpdf_lib/extractor.py: Adapts pdfminer's layout tree into GlyphRun lists.

pdfminer does the content-stream parsing; every text line it finds becomes one
GlyphRun. Reading order is rebuilt afterwards by cpdf_lib.layout, so the
order pdfminer yields the lines in does not matter.
"""
import logging
import os

from pdfminer.high_level import extract_pages
from pdfminer.layout import LAParams, LTTextLine
from pdfminer.pdfpage import PDFPage
from pdfminer.psparser import PSException

from .layout import reconstruct_document_text
from .models import GlyphRun

log_extract = logging.getLogger("cpdf.extract")


class PdfParseError(Exception):
    """Raised when a PDF yields no parseable content stream."""


class PDFTextExtractor:
    """
    Extracts glyph runs and reconstructed page text from a PDF file.
    Args:
        pdf_path (str): The file path to the PDF.
        laparams (LAParams): Optional pdfminer layout parameters.
    """

    def __init__(self, pdf_path, laparams=None):
        self.pdf_path = pdf_path
        self.laparams = laparams or LAParams()
        if not os.path.exists(self.pdf_path):
            raise FileNotFoundError(f"PDF file not found: {self.pdf_path}")

    def _find_elements_by_type(self, obj, t):
        """Recursively finds all layout elements of a specific type."""
        e = []
        if isinstance(obj, t):
            e.append(obj)
        if hasattr(obj, "_objs"):
            for child in obj:
                e.extend(self._find_elements_by_type(child, t))
        return e

    @staticmethod
    def line_to_glyph_run(line) -> GlyphRun:
        """Maps a pdfminer text line onto a GlyphRun anchored at its baseline origin."""
        return GlyphRun(
            text=line.get_text().rstrip("\n"),
            x=line.x0,
            y=line.y0,
            height=line.height,
            width=line.width,
        )

    def count_pages(self) -> int:
        try:
            with open(self.pdf_path, "rb") as fp:
                return sum(1 for _ in PDFPage.get_pages(fp))
        except PSException as e:
            raise PdfParseError(
                f"Could not read {self.pdf_path}. The file may be image-based or corrupted."
            ) from e

    def extract_glyph_runs(self, pages=None) -> dict:
        """Returns {page_number: [GlyphRun, ...]} for the selected (1-based) pages."""
        runs_by_page = {}
        try:
            # pdfminer numbers only the pages it yields, so the selection is
            # applied on the ids of a full walk.
            for page_layout in extract_pages(self.pdf_path, laparams=self.laparams):
                if pages and page_layout.pageid not in pages:
                    continue
                lines = self._find_elements_by_type(page_layout, LTTextLine)
                runs = [
                    self.line_to_glyph_run(line) for line in lines if line.get_text().strip()
                ]
                log_extract.debug("Page %d: %d glyph runs.", page_layout.pageid, len(runs))
                runs_by_page[page_layout.pageid] = runs
        except PSException as e:
            raise PdfParseError(
                f"Could not get text from {self.pdf_path}. "
                "The file may be image-based or corrupted."
            ) from e
        log_extract.info("Extracted glyph runs from %d pages.", len(runs_by_page))
        return runs_by_page

    def extract_page_texts(self, pages=None) -> dict:
        """Returns {page_number: reconstructed page text}."""
        runs_by_page = self.extract_glyph_runs(pages)
        texts = reconstruct_document_text(list(runs_by_page.values()))
        return dict(zip(runs_by_page.keys(), texts))


def parse_pdf(pdf_path) -> list[str]:
    """Parses a whole PDF into its DocumentText (one string per page)."""
    return list(PDFTextExtractor(pdf_path).extract_page_texts().values())
