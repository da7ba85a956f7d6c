# --- cpdf_lib/api.py ---
import logging

from core.llm_utils import query_text_llm

from .citations import parse_citations
from .models import Citation
from .prompts import (
    EMPTY_LIBRARY_MESSAGE,
    RESEARCH_SYSTEM_PROMPT,
    build_user_content,
    summary_query,
)

log = logging.getLogger("cpdf.api")


def parse_page_selection(pages_str: str) -> set | None:
    """Parses a page selection string (e.g., '1,3,5-7') into a set of integers."""
    if not pages_str or pages_str.lower() == "all":
        return None
    pages = set()
    try:
        for p in pages_str.split(","):
            part = p.strip()
            if "-" in part:
                s, e = map(int, part.split("-"))
                pages.update(range(s, e + 1))
            else:
                pages.add(int(part))
        return pages
    except ValueError:
        log.error("Invalid page selection format: %s. Defaulting to 'all'.", pages_str)
        return None


def query_documents_stream(
    documents,
    query: str,
    ollama_url: str,
    model: str,
    temperature: float = 0.2,
    context_window: int = None,
):
    """
    Asks the model a question over the given library documents.
    This is a generator of response text chunks; failures are yielded as a
    Markdown error notice so the caller can keep rendering.
    """
    if not documents:
        yield EMPTY_LIBRARY_MESSAGE
        return

    log.info("Querying %d document(s): '%s'", len(documents), query[:80])
    stream_generator = query_text_llm(
        prompt=RESEARCH_SYSTEM_PROMPT,
        user_content=build_user_content(documents, query),
        ollama_url=ollama_url,
        model=model,
        stream=True,
        temperature=temperature,
        context_window=context_window,
    )
    for chunk_data in stream_generator:
        if chunk_data.get("error"):
            yield f"\n\n**Error:** {chunk_data['error']}"
            break
        response_chunk = chunk_data.get("response", "")
        if response_chunk:
            yield response_chunk


def summarize_documents_stream(
    documents, ollama_url: str, model: str, temperature=0.2, context_window=None
):
    """Streams a structured summary of one or several documents."""
    yield from query_documents_stream(
        documents,
        summary_query(len(documents)),
        ollama_url,
        model,
        temperature,
        context_window,
    )


def collect_citations(text: str, library_size: int) -> list[Citation]:
    """Returns only the citation spans of a response, in order."""
    return [span for span in parse_citations(text, library_size) if isinstance(span, Citation)]
