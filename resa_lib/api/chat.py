# --- resa_lib/api/chat.py ---
import logging

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context
from werkzeug.exceptions import BadRequest

from cpdf_lib.api import query_documents_stream, summarize_documents_stream
from cpdf_lib.citations import CitationRenderer, parse_citations, resolve_citation_target

bp = Blueprint("chat", __name__)
log = logging.getLogger("resa.api")


def _selected_documents(data):
    """Returns the library documents a request refers to, in library order.

    Citation indices are positions in this list, so /render and /resolve must
    be given the same 'document_ids' as the /query that produced the text.
    """
    docs = current_app.storage.get_all_documents()
    wanted = data.get("document_ids")
    if wanted is None:
        return docs
    if not isinstance(wanted, list):
        raise BadRequest("'document_ids' must be a list of document ids.")
    wanted = {int(i) for i in wanted if str(i).isdigit()}
    return [doc for doc in docs if doc.id in wanted]


def _stream(generator):
    return Response(stream_with_context(generator), mimetype="text/plain; charset=utf-8")


def _record_exchange(storage, query_text, stream_generator):
    """Passes the answer through and saves it to the history once it completes."""
    storage.add_message("user", query_text)
    answer = ""
    for chunk in stream_generator:
        answer += chunk
        yield chunk
    storage.add_message("ai", answer)


@bp.route("/query", methods=["POST"])
def query():
    """Streams the model's answer to a research question as plain text."""
    data = request.get_json(silent=True) or {}
    query_text = (data.get("query") or "").strip()
    if not query_text:
        return jsonify({"error": "Missing required field 'query'"}), 400

    documents = _selected_documents(data)
    temperature = current_app.config_service.get_float("Ollama", "temperature")
    answer_stream = query_documents_stream(
        documents,
        query_text,
        current_app.config["OLLAMA_URL"],
        current_app.config["OLLAMA_MODEL"],
        temperature,
    )
    return _stream(_record_exchange(current_app.storage, query_text, answer_stream))


@bp.route("/history", methods=["GET"])
def get_history():
    """Returns the saved conversation, oldest message first."""
    return jsonify(current_app.storage.get_messages())


@bp.route("/history", methods=["DELETE"])
def clear_history():
    removed = current_app.storage.clear_messages()
    return jsonify({"success": True, "removed": removed})


@bp.route("/summarize", methods=["POST"])
def summarize():
    data = request.get_json(silent=True) or {}
    documents = _selected_documents(data)
    temperature = current_app.config_service.get_float("Ollama", "temperature")
    return _stream(
        summarize_documents_stream(
            documents,
            current_app.config["OLLAMA_URL"],
            current_app.config["OLLAMA_MODEL"],
            temperature,
        )
    )


@bp.route("/render", methods=["POST"])
def render():
    """Turns (a prefix of) a response into HTML with citation buttons and spans."""
    data = request.get_json(silent=True) or {}
    text = data.get("text")
    if text is None:
        return jsonify({"error": "Missing required field 'text'"}), 400

    names = [doc.name for doc in _selected_documents(data)]
    spans = parse_citations(text, len(names))
    html = CitationRenderer(names).render(text)
    return jsonify({"html": html, "spans": [span.to_dict() for span in spans]})


@bp.route("/resolve", methods=["POST"])
def resolve():
    """Maps an activated citation onto a library document and page."""
    data = request.get_json(silent=True) or {}
    documents = _selected_documents(data)
    target = resolve_citation_target(
        data.get("doc_index"), data.get("page"), data.get("quote"), len(documents)
    )
    if target is None:
        return jsonify({"error": "Citation points to a missing document or page."}), 404

    doc_index, page, quote = target
    doc = documents[doc_index - 1]
    if page > len(doc.pages):
        return jsonify({"error": f"'{doc.name}' has no page {page}."}), 404
    return jsonify({"document_id": doc.id, "name": doc.name, "page": page, "quote": quote})
