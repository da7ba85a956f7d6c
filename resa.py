#!/usr/bin/env python3
"""resa: Main entry point for the research assistant web service."""

import argparse
import logging
import os
import sys

from core.log_utils import setup_logging
from resa_lib.app import APP_DIR, create_app


def parse_arguments(args=None):
    parser = argparse.ArgumentParser(description="resa research assistant service.")
    g_server = parser.add_argument_group("Server")
    g_server.add_argument("--host", default="127.0.0.1", help="Bind address.")
    g_server.add_argument("--port", type=int, default=5000, help="Bind port.")

    g_ollama = parser.add_argument_group("Ollama Configuration")
    g_ollama.add_argument(
        "--ollama-url",
        type=str,
        default=None,
        help="Ollama server URL. Default: from resa.cfg",
    )
    g_ollama.add_argument(
        "--ollama-model",
        type=str,
        default=None,
        help="Text generation model. Default: from resa.cfg",
    )

    g_log = parser.add_argument_group("Logging & Output")
    g_log.add_argument(
        "-v", "--verbose", action="store_true", help="Enable INFO logging for progress."
    )
    g_log.add_argument(
        "--color-logs", action="store_true", help="Enable colored logging output."
    )
    g_log.add_argument(
        "--log-file",
        metavar="FILE",
        default=None,
        help="Redirect all logging output to a specified file.",
    )
    g_log.add_argument(
        "-d",
        "--debug",
        dest="debug_topics",
        metavar="TOPICS",
        help="Enable DEBUG logging (all,api,storage,config,layout,cite,quote,llm).",
    )
    return parser.parse_args(args)


def main():
    """Initializes and runs the resa Flask application."""
    os.makedirs(APP_DIR, exist_ok=True)
    log = logging.getLogger("resa")
    args = parse_arguments()

    setup_logging(
        project_name="resa",
        level=logging.INFO if args.verbose else logging.WARNING,
        color_logs=args.color_logs,
        debug_topics=args.debug_topics,
        include_projects=["cpdf"],
        log_file=args.log_file,
    )

    config_overrides = {
        key: value
        for key, value in {
            "OLLAMA_URL": args.ollama_url,
            "OLLAMA_MODEL": args.ollama_model,
        }.items()
        if value is not None
    }

    try:
        app = create_app(config_overrides)
        log.info("Database is located at: %s", app.config["DATABASE"])
        log.info("Using Ollama server at: %s", app.config["OLLAMA_URL"])
    except Exception as e:
        log.critical("Failed to create the resa application: %s", e, exc_info=True)
        sys.exit(1)

    try:
        log.info("Starting resa server at http://%s:%d...", args.host, args.port)
        from waitress import serve

        serve(app, host=args.host, port=args.port, channel_timeout=600)
    except KeyboardInterrupt:
        log.info("\nServer stopped by user. Exiting.")
        sys.exit(0)
    except Exception as e:
        log.critical("The Flask server failed to run: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
