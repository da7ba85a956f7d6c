# --- resa_lib/app.py ---
import logging
import os

from flask import Flask, jsonify

from cpdf_lib.quotes import RenderGenerationTracker

from .services.config_service import ConfigService
from .services.storage_service import StorageService

APP_DIR = os.path.join(os.path.expanduser("~"), ".resa")


def create_app(config_overrides=None):
    """
    Creates and configures an instance of the Flask application.
    """
    app = Flask(__name__, instance_relative_config=True)
    log = logging.getLogger("resa.app")

    app.config.from_mapping(
        SECRET_KEY="dev",
        DATABASE=os.path.join(APP_DIR, "resa.db"),
        CONFIG_PATH=os.path.join(APP_DIR, "resa.cfg"),
        UPLOAD_PATH=os.path.join(APP_DIR, "uploads"),
        OLLAMA_URL=None,
        OLLAMA_MODEL=None,
    )

    if config_overrides:
        app.config.from_mapping(config_overrides)
        log.info("Applied runtime configuration overrides.")

    log.info("Initializing application services...")
    try:
        os.makedirs(app.config["UPLOAD_PATH"], exist_ok=True)
        app.storage = StorageService(app.config["DATABASE"])
        app.config_service = ConfigService(app.config["CONFIG_PATH"])
        app.render_tracker = RenderGenerationTracker()

        settings = app.config_service.get_settings()
        if not app.config["OLLAMA_URL"]:
            app.config["OLLAMA_URL"] = settings["Ollama"]["url"]
        if not app.config["OLLAMA_MODEL"]:
            app.config["OLLAMA_MODEL"] = settings["Ollama"]["model"]

        with app.app_context():
            app.storage.init_db()
        log.info("All services initialized successfully.")
    except Exception as e:
        log.error("Failed to initialize services: %s", e, exc_info=True)
        raise

    log.info("Registering API blueprints...")
    from .api import chat, documents, settings as settings_api, viewer

    app.register_blueprint(documents.bp, url_prefix="/api/documents")
    app.register_blueprint(chat.bp, url_prefix="/api/chat")
    app.register_blueprint(viewer.bp, url_prefix="/api/viewer")
    app.register_blueprint(settings_api.bp, url_prefix="/api/settings")
    log.info("All API blueprints registered.")

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Catches all unhandled exceptions, logs them, and returns JSON."""
        if hasattr(e, "code") and isinstance(e.code, int) and e.code < 500:
            return jsonify(error=str(e)), e.code
        app.logger.exception("An unhandled exception occurred: %s", e)
        return jsonify(error="An internal server error occurred."), 500

    @app.route("/health")
    def health_check():
        return "OK"

    return app
