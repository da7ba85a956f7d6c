# --- resa_lib/api/settings.py ---
from flask import Blueprint, request, jsonify, current_app

bp = Blueprint("settings", __name__)


@bp.route("/", methods=["GET"])
def get_settings():
    """Gets all settings from the config file."""
    settings = current_app.config_service.get_settings()
    return jsonify(settings)


@bp.route("/", methods=["POST"])
def save_settings():
    """Saves settings to the config file and refreshes the Ollama target."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Missing request body"}), 400

    current_app.config_service.save_settings(data)
    ollama = data.get("Ollama", {})
    if ollama.get("url"):
        current_app.config["OLLAMA_URL"] = ollama["url"]
    if ollama.get("model"):
        current_app.config["OLLAMA_MODEL"] = ollama["model"]
    return jsonify({"success": True, "message": "Settings saved."})
