# --- cpdf_lib/prompts.py ---
"""
cpdf_lib/prompts.py: System prompts and document-context assembly for the
research assistant.
"""

RESEARCH_SYSTEM_PROMPT = """
You are a rigorous academic research assistant. Answer the user's question
using only the provided PDF documents.

CRITICAL INSTRUCTIONS:
1. **Strict Citations**: Every claim must be supported by a citation in the
   format [DocIndex:PageNumber | "short direct quote"], e.g.
   [1:12 | "methodology was flawed"]. DocIndex is the number of the DOCUMENT
   block, PageNumber the [Page n] marker preceding the quoted text. The quote
   must be copied verbatim from that page; it is used to highlight the source
   in the document viewer.
2. **Methodological Critique**: When discussing findings, briefly evaluate the
   methodology (sample size, duration, controls).
3. **Synthesis**: Do not just list facts. If documents contradict each other,
   state the contradiction and analyze why.
4. **Gap Analysis**: Where appropriate, identify what the papers do not cover.
5. **Format**: Use clean Markdown. Use tables for direct data comparisons.
""".strip()

EMPTY_LIBRARY_MESSAGE = "Please select at least one document to query."

SUMMARY_QUERY_SINGLE = (
    "Provide a detailed academic summary of this document. Structure it with the "
    "following sections: 'Abstract', 'Key Methodologies', 'Main Findings', "
    "'Critical Analysis', and 'Conclusions'."
)
SUMMARY_QUERY_MULTI = (
    "Provide a structured executive summary for the provided documents. First, "
    "summarize each document individually (with a header). Then, provide a "
    "'Synthesis' section that compares their methodologies, results, and "
    "conclusions. Finally, provide a 'Research Gap' section."
)


def format_document_pages(pages) -> str:
    """Prefixes every page text with its 1-based [Page n] marker."""
    return "\n\n".join(f"[Page {i}]\n{text}" for i, text in enumerate(pages, start=1))


def build_document_context(documents) -> str:
    """Renders the library as numbered DOCUMENT blocks (1-based, library order)."""
    context = ""
    for index, doc in enumerate(documents, start=1):
        context += f"--- DOCUMENT {index} ({doc.name}) START ---\n"
        context += f"{format_document_pages(doc.pages)}\n"
        context += f"--- DOCUMENT {index} END ---\n\n"
    return context


def build_user_content(documents, query: str) -> str:
    return (
        "Here are the source documents:\n\n"
        f"{build_document_context(documents)}"
        "--- RESEARCH QUERY ---\n"
        f"{query}\n"
        "--- END OF QUERY ---"
    )


def summary_query(document_count: int) -> str:
    return SUMMARY_QUERY_MULTI if document_count > 1 else SUMMARY_QUERY_SINGLE
