#!/usr/bin/env python3
"""
cpdf: Reading-order text extraction and cited question answering over PDFs.

Each page's positioned text lines are rebuilt into reflowed prose; the library
can then be queried through an Ollama model whose answers cite their sources as
[doc:page | "quote"] markers, and a quote can be located back on its page.
"""

import argparse
import logging
import os
import sys
import time

try:
    from rich.console import Console
    from rich.live import Live
    from rich.markdown import Markdown
    from rich.theme import Theme
except ImportError as e:
    print(f"Error: Missing required library. -> {e}")
    print("Please install all core dependencies with:")
    print("pip install requests rich pdfminer.six markdown-it-py")
    sys.exit(1)

from core.llm_utils import get_model_details
from core.log_utils import ContextFilter, setup_logging
from cpdf_lib.api import (
    collect_citations,
    parse_page_selection,
    query_documents_stream,
    summarize_documents_stream,
)
from cpdf_lib.extractor import PdfParseError, PDFTextExtractor
from cpdf_lib.layout import reconstruct_page_text, sort_reading_order
from cpdf_lib.models import LibraryDocument, TextFragment
from cpdf_lib.quotes import locate_quote

log = logging.getLogger("cpdf")


class CustomHelpFormatter(
    argparse.ArgumentDefaultsHelpFormatter, argparse.RawTextHelpFormatter
):
    """Shows default values while preserving newlines in help text."""

    pass


class Application:
    """Orchestrates extraction, querying and quote lookup from command-line arguments."""

    DEFAULT_FILENAME_SENTINEL = "__DEFAULT_FILENAME__"

    def __init__(self, args):
        self.args = args
        self.stats = {}
        self.documents = []
        self.runs_by_doc = []

    def run(self):
        """Main entry point for the application logic."""
        self.stats["start_time"] = time.monotonic()
        setup_logging(
            project_name="cpdf",
            level=logging.INFO if self.args.verbose else logging.WARNING,
            color_logs=self.args.color_logs,
            debug_topics=self.args.debug_topics,
            log_file=self.args.log_file,
        )

        pages = parse_page_selection(self.args.pages)
        if pages is None and self.args.pages.lower() != "all":
            sys.exit(1)

        self._load_documents(pages)
        self._save_extracted_text()

        if self.args.quote:
            self._locate_quote()
        if self.args.query or self.args.summarize:
            self._ask()
        elif not self.args.quote and not self.args.extracted_file:
            for doc in self.documents:
                print(doc.text)

        log.info("Done in %.1f seconds.", time.monotonic() - self.stats["start_time"])

    def _load_documents(self, pages):
        for index, pdf_file in enumerate(self.args.pdf_files, start=1):
            log_filter = ContextFilter(os.path.basename(pdf_file))
            root_logger = logging.getLogger()
            root_logger.addFilter(log_filter)
            try:
                extractor = PDFTextExtractor(pdf_file)
                runs_by_page = extractor.extract_glyph_runs(pages)
                last_page = extractor.count_pages() if pages else len(runs_by_page)
            finally:
                root_logger.removeFilter(log_filter)
            # Unselected pages stay empty so [Page n] markers keep their numbers.
            texts = [
                reconstruct_page_text(runs_by_page.get(page_num, []))
                for page_num in range(1, last_page + 1)
            ]
            self.runs_by_doc.append(runs_by_page)
            self.documents.append(
                LibraryDocument(
                    id=index,
                    name=os.path.basename(pdf_file),
                    pages=texts,
                    pdf_path=pdf_file,
                )
            )
            log.info("Document %d: '%s' (%d pages).", index, pdf_file, len(texts))

    def _save_extracted_text(self):
        """Saves the reflowed text of every document if requested."""
        if not self.args.extracted_file:
            return
        path = self.args.extracted_file
        if path == self.DEFAULT_FILENAME_SENTINEL:
            path = f"{os.path.splitext(os.path.basename(self.args.pdf_files[0]))[0]}.txt"
        content = []
        for index, doc in enumerate(self.documents, start=1):
            content.append(f"--- DOCUMENT {index} ({doc.name}) ---\n{doc.text}")
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write("\n\n\n".join(content))
            log.info("Reflowed text saved to: '%s'", path)
        except IOError as e:
            log.error("Error saving reflowed text: %s", e)

    def _locate_quote(self):
        """Finds a quote on one page and prints the matching text lines."""
        doc_index, page = self.args.quote_doc, self.args.quote_page
        if not 1 <= doc_index <= len(self.runs_by_doc):
            log.error("Document #%d is not part of this run.", doc_index)
            return
        runs = self.runs_by_doc[doc_index - 1].get(page)
        if runs is None:
            log.error("Page %d was not extracted from document #%d.", page, doc_index)
            return
        ordered = sort_reading_order(runs)
        # Lines are drawn without their separating space.
        fragments = [
            TextFragment(handle=i, text=run.text + " ") for i, run in enumerate(ordered)
        ]
        result = locate_quote(fragments, self.args.quote)
        if not result.found:
            print(f'Quote not found on page {page}: "{self.args.quote}"')
            return
        print(f"Quote found on page {page} ({len(result.marked)} line(s)):")
        for handle in result.marked:
            marker = ">" if handle == result.scroll_target else " "
            print(f"{marker} {ordered[handle].text}")

    def _check_context_size(self):
        """Warns when the library text is unlikely to fit the model's context window."""
        context_size = self.args.context_size
        if not context_size:
            details = get_model_details(self.args.url, self.args.model)
            context_size = details.get("context_length")
        if not context_size:
            return
        # Rough estimate of 4 characters per token.
        estimated_tokens = sum(len(doc.text) for doc in self.documents) // 4
        if estimated_tokens > context_size:
            log.warning(
                "The library holds ~%d tokens but the context window is %d; "
                "the model will not see all of it.",
                estimated_tokens,
                context_size,
            )

    def _ask(self):
        self._check_context_size()
        if self.args.summarize:
            stream = summarize_documents_stream(
                self.documents,
                self.args.url,
                self.args.model,
                self.args.temperature,
                self.args.context_size,
            )
        else:
            stream = query_documents_stream(
                self.documents,
                self.args.query,
                self.args.url,
                self.args.model,
                self.args.temperature,
                self.args.context_size,
            )
        if self.args.rich_stream:
            answer = self._stream_generator_to_rich(stream)
        else:
            answer = self._stream_generator_to_stdout(stream)
        self._print_citations(answer)

    def _print_citations(self, answer):
        citations = collect_citations(answer, len(self.documents))
        if not citations:
            return
        print("\n--- Citations ---")
        for c in citations:
            if c.valid:
                where = f"{self.documents[c.doc_index - 1].name}, page {c.page}"
            else:
                where = f"document #{c.doc_index} is missing from the library"
            quote = f' "{c.quote}"' if c.quote else ""
            print(f"  [{c.label}] {where}{quote}")

    def _stream_generator_to_rich(self, stream_generator):
        """Streams a generator to a `rich` live Markdown display."""
        content = ""
        custom_theme = Theme(
            {
                "markdown.h1": "bold sky_blue2",
                "markdown.strong": "bold sky_blue2",
                "markdown.em": "italic turquoise2",
                "markdown.code": "grey74",
                "markdown.text": "grey93",
            }
        )
        console = Console(theme=custom_theme)
        live = Live(console=console, auto_refresh=False, vertical_overflow="visible")
        with live:
            for raw_chunk in stream_generator:
                content += raw_chunk
                live.update(Markdown(content), refresh=True)
        return content

    def _stream_generator_to_stdout(self, stream_generator):
        """Streams a generator directly to stdout."""
        content = ""
        print()
        for raw_chunk in stream_generator:
            content += raw_chunk
            print(raw_chunk, end="", flush=True)
        print()
        return content

    @staticmethod
    def parse_arguments(args=None):
        """Parses command-line arguments for the script."""
        examples = [
            "\nExamples:",
            "  python cpdf.py paper.pdf -e",
            '  python cpdf.py a.pdf b.pdf -q "How do the sample sizes compare?" --rich-stream',
            '  python cpdf.py paper.pdf --quote-page 3 --quote "sample consisted of"',
        ]
        parser = argparse.ArgumentParser(
            description="Reading-order PDF text extraction and cited Q&A.",
            formatter_class=CustomHelpFormatter,
            epilog="\n".join(examples),
        )
        S = Application.DEFAULT_FILENAME_SENTINEL

        parser.add_argument("pdf_files", nargs="+", metavar="PDF", help="Input PDF files.")

        g_proc = parser.add_argument_group("Processing Control")
        g_proc.add_argument(
            "-p",
            "--pages",
            default="all",
            metavar="PAGES",
            help="Pages to process (e.g., '1,3,5-7').",
        )
        g_proc.add_argument(
            "-e",
            "--extracted-file",
            nargs="?",
            const=S,
            default=None,
            metavar="FILE",
            help="Save reflowed text. Defaults to the first PDF's name.",
        )

        g_quote = parser.add_argument_group("Quote Lookup")
        g_quote.add_argument("--quote", default=None, help="Quote to locate on a page.")
        g_quote.add_argument("--quote-page", type=int, default=1, help="Page to search.")
        g_quote.add_argument(
            "--quote-doc", type=int, default=1, help="1-based document to search."
        )

        g_llm = parser.add_argument_group("LLM Configuration")
        g_llm.add_argument("-q", "--query", default=None, help="Research question to ask.")
        g_llm.add_argument(
            "--summarize", action="store_true", help="Summarize the documents instead."
        )
        g_llm.add_argument("-M", "--model", default="llama3.1:latest", help="Ollama model.")
        g_llm.add_argument("-U", "--url", default="http://localhost:11434", help="Ollama URL.")
        g_llm.add_argument(
            "-t", "--temperature", type=float, default=0.2, help="Model temperature."
        )
        g_llm.add_argument(
            "-c",
            "--context-size",
            type=int,
            default=None,
            metavar="TOKENS",
            help="Context window (num_ctx) to request. Defaults to the model's own.",
        )
        g_llm.add_argument(
            "--rich-stream", action="store_true", help="Render the answer as live Markdown."
        )

        g_log = parser.add_argument_group("Logging")
        g_log.add_argument("--log-file", metavar="FILE", default=None, help="Log to a file.")
        g_log.add_argument("--color-logs", action="store_true", help="Colored log output.")
        g_log.add_argument("-v", "--verbose", action="store_true", help="Enable INFO logging.")
        g_log.add_argument(
            "-d",
            "--debug",
            nargs="?",
            const="all",
            dest="debug_topics",
            metavar="TOPICS",
            help="Enable DEBUG logging (all,layout,extract,cite,quote,llm,api).",
        )
        return parser.parse_args(args)


def main():
    """Main entry point for the script."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    try:
        args = Application.parse_arguments(sys.argv[1:])
        Application(args).run()
    except (FileNotFoundError, PdfParseError) as e:
        log.critical(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        log.info("\nProcess interrupted by user. Exiting.")
        sys.exit(0)
    except Exception as e:
        log.critical("\nAn unexpected error occurred: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
