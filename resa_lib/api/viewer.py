# --- resa_lib/api/viewer.py ---
import logging

from flask import Blueprint, request, jsonify, current_app

from cpdf_lib.models import TextFragment

bp = Blueprint("viewer", __name__)
log = logging.getLogger("resa.api")


@bp.route("/render", methods=["POST"])
def begin_render():
    """Registers a new page render attempt and returns its generation marker."""
    data = request.get_json(silent=True) or {}
    doc_id, page = data.get("document_id"), data.get("page")
    if doc_id is None or page is None:
        return jsonify({"error": "Missing required fields 'document_id' and 'page'"}), 400
    generation = current_app.render_tracker.begin_render(doc_id, page)
    return jsonify({"generation": generation})


@bp.route("/highlight", methods=["POST"])
def highlight():
    """
    Locates a quote on the fragments of a finished render.
    Body: {"generation": int, "quote": str, "fragments": [{"id": ..., "text": str}]}
    A stale generation is answered with {"stale": true} and nothing to mark.
    """
    data = request.get_json(silent=True) or {}
    fragments_data = data.get("fragments")
    if "generation" not in data or not isinstance(fragments_data, list):
        return jsonify({"error": "Missing required fields 'generation' and 'fragments'"}), 400
    try:
        generation = int(data["generation"])
    except (TypeError, ValueError):
        return jsonify({"error": "'generation' must be an integer"}), 400

    fragments = [
        TextFragment(handle=item.get("id", i), text=str(item.get("text") or ""))
        for i, item in enumerate(fragments_data)
        if isinstance(item, dict)
    ]
    result = current_app.render_tracker.highlight_for_render(
        generation, fragments, data.get("quote") or ""
    )
    if result is None:
        return jsonify({"stale": True, "marked": [], "scroll_target": None, "cleared": []})
    if not result.found and data.get("quote"):
        log.info("Quote not found on the rendered page (generation %d).", generation)
    return jsonify({"stale": False, **result.to_dict()})
