import logging
import sqlite3
from io import BytesIO

import pytest

from core.log_utils import ContextFilter, RichLogFormatter, resolve_debug_loggers
from cpdf_lib.extractor import PdfParseError
from resa_lib.app import create_app
from resa_lib.services.config_service import ConfigService
from resa_lib.services.storage_service import StorageService


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "resa.db"),
            "CONFIG_PATH": str(tmp_path / "resa.cfg"),
            "UPLOAD_PATH": str(tmp_path / "uploads"),
            "OLLAMA_URL": "http://ollama",
            "OLLAMA_MODEL": "test-model",
        }
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def _upload(client, name="paper.pdf"):
    return client.post(
        "/api/documents/",
        data={"file": (BytesIO(b"%PDF-1.4\n%%EOF"), name)},
        content_type="multipart/form-data",
    )


# --- Services ---


def test_storage_round_trip(tmp_path):
    storage = StorageService(str(tmp_path / "lib.db"))
    storage.init_db()
    first = storage.add_document("a.pdf", "/tmp/a.pdf", ["p1", "p2"])
    second = storage.add_document("b.pdf", None, [])

    docs = storage.get_all_documents()
    assert [d.id for d in docs] == [first, second]
    assert docs[0].pages == ["p1", "p2"]
    assert docs[0].text == "p1\n\np2"

    assert storage.replace_pages(first, ["new"])
    assert storage.get_document(first).pages == ["new"]
    assert storage.delete_document(second)
    assert storage.get_document(second) is None
    assert storage.clear_documents() == 1
    assert storage.get_all_documents() == []


def test_storage_keeps_chat_history_in_order(tmp_path):
    storage = StorageService(str(tmp_path / "lib.db"))
    storage.init_db()
    storage.add_message("user", "How many subjects?")
    storage.add_message("ai", "Forty [1:2].")

    history = storage.get_messages()
    assert [(m["sender"], m["text"]) for m in history] == [
        ("user", "How many subjects?"),
        ("ai", "Forty [1:2]."),
    ]
    assert history[0]["timestamp"]
    assert storage.clear_messages() == 2
    assert storage.get_messages() == []


def test_storage_requires_path():
    with pytest.raises(ValueError):
        StorageService("")


def test_config_defaults_are_written_and_overridable(tmp_path):
    path = tmp_path / "resa.cfg"
    service = ConfigService(str(path))
    settings = service.get_settings()
    assert path.exists()
    assert settings["Ollama"]["model"] == "llama3.1:latest"
    assert service.get_float("Ollama", "temperature") == 0.2

    settings["Ollama"]["temperature"] = "warm"
    settings["Library"]["max_documents"] = "3"
    service.save_settings(settings)
    assert service.get_float("Ollama", "temperature") == 0.2
    assert service.get_int("Library", "max_documents") == 3


# --- Logging ---


def test_debug_topics_expand_by_prefix():
    names = resolve_debug_loggers("resa", "sto,la", include_projects=["cpdf"])
    assert names == ["resa.storage", "cpdf.layout"]
    assert "cpdf.quote" in resolve_debug_loggers("cpdf", "all")


def test_formatter_prefixes_every_line_with_topic():
    record = logging.LogRecord("cpdf.layout", logging.INFO, __file__, 1, "one\ntwo", None, None)
    ContextFilter("a.pdf").filter(record)
    lines = RichLogFormatter().format(record).split("\n")
    assert lines == ["INFO :layout[a.pdf]: one", "INFO :layout[a.pdf]: two"]


# --- Documents API ---


def test_upload_list_and_fetch_document(client, mocker):
    mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["Page one.", "Page two."])

    resp = _upload(client)
    assert resp.status_code == 201
    doc_id = resp.get_json()["id"]

    listing = client.get("/api/documents/").get_json()
    assert listing == [{"id": doc_id, "index": 1, "name": "paper.pdf", "page_count": 2}]

    assert client.get(f"/api/documents/{doc_id}").get_json()["pages"] == ["Page one.", "Page two."]
    text = client.get(f"/api/documents/{doc_id}/text").get_json()["text"]
    assert text == "Page one.\n\nPage two."


def test_upload_rejects_non_pdf(client):
    resp = _upload(client, name="notes.txt")
    assert resp.status_code == 400


def test_upload_reports_unparseable_pdf(client, mocker, tmp_path):
    mocker.patch(
        "resa_lib.api.documents.parse_pdf",
        side_effect=PdfParseError("The file may be image-based or corrupted."),
    )
    resp = _upload(client)
    assert resp.status_code == 422
    assert "corrupted" in resp.get_json()["error"]
    assert client.get("/api/documents/").get_json() == []
    assert list((tmp_path / "uploads").iterdir()) == []


def test_upload_removes_file_when_storing_fails(client, app, mocker, tmp_path):
    mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["x"])
    mocker.patch.object(app.storage, "add_document", side_effect=sqlite3.OperationalError("locked"))
    resp = _upload(client)
    assert resp.status_code == 500
    assert list((tmp_path / "uploads").iterdir()) == []


def test_reparse_replaces_pages(client, mocker):
    parse = mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["old"])
    doc_id = _upload(client).get_json()["id"]
    parse.return_value = ["new", "pages"]
    resp = client.post(f"/api/documents/{doc_id}/reparse")
    assert resp.get_json() == {"id": doc_id, "page_count": 2}
    assert client.get(f"/api/documents/{doc_id}").get_json()["pages"] == ["new", "pages"]


def test_delete_and_clear(client, mocker):
    mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["x"])
    first = _upload(client).get_json()["id"]
    _upload(client, "other.pdf")
    assert client.delete(f"/api/documents/{first}").status_code == 200
    assert client.delete(f"/api/documents/{first}").status_code == 404
    assert client.delete("/api/documents/").get_json() == {"success": True, "removed": 1}


def test_missing_document_is_404(client):
    assert client.get("/api/documents/99").status_code == 404


# --- Chat API ---


def test_query_streams_plain_text(client, mocker):
    mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["Growth was slow."])
    _upload(client)
    mock_llm = mocker.patch(
        "cpdf_lib.api.query_text_llm",
        return_value=iter([{"response": "Slow "}, {"response": '[1:1 | "growth"]'}]),
    )
    resp = client.post("/api/chat/query", json={"query": "How was growth?"})
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == 'Slow [1:1 | "growth"]'
    assert mock_llm.call_args.kwargs["model"] == "test-model"


def test_query_requires_text(client):
    assert client.post("/api/chat/query", json={}).status_code == 400


def test_query_with_empty_library(client):
    resp = client.post("/api/chat/query", json={"query": "Anything?"})
    assert "select at least one document" in resp.get_data(as_text=True)


def test_query_is_saved_to_history(client, mocker):
    mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["Growth was slow."])
    _upload(client)
    mocker.patch(
        "cpdf_lib.api.query_text_llm",
        return_value=iter([{"response": "Slow "}, {"response": "[1:1]"}]),
    )
    client.post("/api/chat/query", json={"query": "How was growth?"}).get_data()

    history = client.get("/api/chat/history").get_json()
    assert [(m["sender"], m["text"]) for m in history] == [
        ("user", "How was growth?"),
        ("ai", "Slow [1:1]"),
    ]
    assert client.delete("/api/chat/history").get_json() == {"success": True, "removed": 2}
    assert client.get("/api/chat/history").get_json() == []


def test_document_ids_must_be_a_list(client):
    resp = client.post("/api/chat/query", json={"query": "Anything?", "document_ids": 5})
    assert resp.status_code == 400
    assert client.post("/api/chat/render", json={"text": "x", "document_ids": "1"}).status_code == 400


def test_render_returns_html_and_spans(client, mocker):
    mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["x"])
    _upload(client)
    resp = client.post("/api/chat/render", json={"text": "See [1:1] and [2:5 | 'q']."})
    data = resp.get_json()
    assert [s["type"] for s in data["spans"]] == ["text", "citation", "text", "citation", "text"]
    assert data["spans"][1]["valid"] is True
    assert data["spans"][3] == {
        "type": "citation",
        "doc_index": 2,
        "page": 5,
        "quote": "q",
        "valid": False,
    }
    assert 'data-citation-doc="1"' in data["html"]
    assert "citation-invalid" in data["html"]


def test_resolve_maps_citation_to_document(client, mocker):
    mocker.patch("resa_lib.api.documents.parse_pdf", return_value=["p1", "p2"])
    doc_id = _upload(client).get_json()["id"]
    resp = client.post("/api/chat/resolve", json={"doc_index": 1, "page": 2, "quote": "p2"})
    assert resp.get_json() == {"document_id": doc_id, "name": "paper.pdf", "page": 2, "quote": "p2"}
    assert client.post("/api/chat/resolve", json={"doc_index": 1, "page": 3}).status_code == 404
    assert client.post("/api/chat/resolve", json={"doc_index": 2, "page": 1}).status_code == 404


# --- Viewer API ---


def test_highlight_for_current_render(client):
    generation = client.post(
        "/api/viewer/render", json={"document_id": 1, "page": 2}
    ).get_json()["generation"]
    fragments = [
        {"id": "s0", "text": "The "},
        {"id": "s1", "text": "sample "},
        {"id": "s2", "text": "consisted of 40 subjects."},
    ]
    resp = client.post(
        "/api/viewer/highlight",
        json={"generation": generation, "fragments": fragments, "quote": "Sample consisted of"},
    )
    assert resp.get_json() == {
        "stale": False,
        "marked": ["s1", "s2"],
        "scroll_target": "s1",
        "cleared": [],
    }


def test_highlight_for_stale_render_is_discarded(client):
    old = client.post("/api/viewer/render", json={"document_id": 1, "page": 1}).get_json()
    client.post("/api/viewer/render", json={"document_id": 1, "page": 2})
    resp = client.post(
        "/api/viewer/highlight",
        json={"generation": old["generation"], "fragments": [], "quote": "x"},
    )
    assert resp.get_json()["stale"] is True


def test_highlight_accepts_generation_as_string(client):
    generation = client.post(
        "/api/viewer/render", json={"document_id": 1, "page": 1}
    ).get_json()["generation"]
    resp = client.post(
        "/api/viewer/highlight",
        json={"generation": str(generation), "fragments": [{"id": 0, "text": "abc"}], "quote": "abc"},
    )
    assert resp.get_json()["stale"] is False
    assert resp.get_json()["marked"] == [0]
    bad = client.post("/api/viewer/highlight", json={"generation": "soon", "fragments": []})
    assert bad.status_code == 400


def test_highlight_validates_body(client):
    assert client.post("/api/viewer/highlight", json={"quote": "x"}).status_code == 400
    assert client.post("/api/viewer/render", json={"page": 1}).status_code == 400


def test_settings_round_trip(client, app):
    settings = client.get("/api/settings/").get_json()
    settings["Ollama"]["model"] = "other-model"
    assert client.post("/api/settings/", json=settings).status_code == 200
    assert app.config["OLLAMA_MODEL"] == "other-model"


def test_health(client):
    assert client.get("/health").get_data(as_text=True) == "OK"
