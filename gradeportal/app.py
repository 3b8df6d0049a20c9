#!/usr/bin/env python3
"""
Grade Portal - Grade Contract Management API
============================================
Run: python3 -m gradeportal.app
"""

import logging

from flask import Flask, jsonify
from flask_cors import CORS

from gradeportal.config import config, HOST, PORT, DEBUG, LOG_LEVEL
from gradeportal.auth import init_auth
from gradeportal.routes import register_routes

logger = logging.getLogger(__name__)


def create_app(settings: dict = None):
    """Build the Flask app. `settings` overrides fields of the global Config."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings:
        config.update(settings)

    app = Flask(__name__)
    CORS(app)

    # Auth hook must be registered before the blueprints
    init_auth(app)
    register_routes(app)

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    logger.info("Grade portal ready (store: %s)", config.store_file)
    return app


app = create_app()


if __name__ == '__main__':
    print()
    print("+" + "=" * 50 + "+")
    print("|  Grade Portal API                                |")
    print("+" + "=" * 50 + "+")
    print(f"|  Listening on http://{HOST}:{PORT}".ljust(51) + "|")
    print("|  Press Ctrl+C to stop                            |")
    print("+" + "=" * 50 + "+")
    print()

    app.run(host=HOST, port=PORT, debug=DEBUG)
