# --- resa_lib/api/documents.py ---
import logging
import os
import uuid

from flask import Blueprint, request, jsonify, current_app
from werkzeug.utils import secure_filename

from cpdf_lib.extractor import PdfParseError, parse_pdf

bp = Blueprint("documents", __name__)
log = logging.getLogger("resa.api")


def _document_summary(index, doc):
    return {"id": doc.id, "index": index, "name": doc.name, "page_count": len(doc.pages)}


@bp.route("/", methods=["GET"])
def list_documents():
    """Lists the library; 'index' is the 1-based number citations refer to."""
    docs = current_app.storage.get_all_documents()
    return jsonify([_document_summary(i, doc) for i, doc in enumerate(docs, start=1)])


@bp.route("/", methods=["POST"])
def upload_document():
    """Stores an uploaded PDF and its reconstructed page texts."""
    upload = request.files.get("file")
    if not upload or not upload.filename:
        return jsonify({"error": "Missing PDF file in form field 'file'"}), 400
    if not upload.filename.lower().endswith(".pdf"):
        return jsonify({"error": "Only PDF files are supported."}), 400

    max_docs = current_app.config_service.get_int("Library", "max_documents")
    if len(current_app.storage.get_all_documents()) >= max_docs:
        return jsonify({"error": f"The library is limited to {max_docs} documents."}), 400

    name = upload.filename
    pdf_path = os.path.join(
        current_app.config["UPLOAD_PATH"], f"{uuid.uuid4().hex}_{secure_filename(name)}"
    )
    upload.save(pdf_path)
    stored = False
    try:
        pages = parse_pdf(pdf_path)
        doc_id = current_app.storage.add_document(name, pdf_path, pages)
        stored = True
    except PdfParseError as e:
        log.warning("Rejected upload '%s': %s", name, e)
        return jsonify({"error": str(e)}), 422
    finally:
        if not stored and os.path.exists(pdf_path):
            os.remove(pdf_path)

    log.info("Added '%s' to the library (id=%d, %d pages).", name, doc_id, len(pages))
    return jsonify({"id": doc_id, "name": name, "page_count": len(pages)}), 201


@bp.route("/<int:doc_id>", methods=["GET"])
def get_document(doc_id):
    doc = current_app.storage.get_document(doc_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    return jsonify({"id": doc.id, "name": doc.name, "pages": doc.pages})


@bp.route("/<int:doc_id>/text", methods=["GET"])
def get_document_text(doc_id):
    """Returns the joined reflow text of a document."""
    doc = current_app.storage.get_document(doc_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    return jsonify({"id": doc.id, "text": doc.text})


@bp.route("/<int:doc_id>/reparse", methods=["POST"])
def reparse_document(doc_id):
    """Recomputes a document's page texts from its stored PDF."""
    doc = current_app.storage.get_document(doc_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    if not doc.pdf_path or not os.path.exists(doc.pdf_path):
        return jsonify({"error": "The source PDF is no longer available."}), 410
    try:
        pages = parse_pdf(doc.pdf_path)
    except PdfParseError as e:
        return jsonify({"error": str(e)}), 422
    current_app.storage.replace_pages(doc_id, pages)
    return jsonify({"id": doc_id, "page_count": len(pages)})


@bp.route("/<int:doc_id>", methods=["DELETE"])
def delete_document(doc_id):
    doc = current_app.storage.get_document(doc_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    current_app.storage.delete_document(doc_id)
    if doc.pdf_path and os.path.exists(doc.pdf_path):
        os.remove(doc.pdf_path)
    return jsonify({"success": True})


@bp.route("/", methods=["DELETE"])
def clear_documents():
    for doc in current_app.storage.get_all_documents():
        if doc.pdf_path and os.path.exists(doc.pdf_path):
            os.remove(doc.pdf_path)
    removed = current_app.storage.clear_documents()
    return jsonify({"success": True, "removed": removed})
