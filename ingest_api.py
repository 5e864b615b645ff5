#!/usr/bin/env python3
"""HTTP adapter for on-demand ingestion.

POST /api/ingest   run one ingestion pass for the requested locality
GET  /api/health   liveness
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify, request

from citypulse.contracts.ingest_request import error_response, parse_ingest_request
from citypulse.ingestion.errors import RequestValidationError
from citypulse.ingestion.settings import IngestSettings
from citypulse.pipeline.orchestrator import build_orchestrator
from citypulse.storage.postgres_activities import PostgresActivityStore
from citypulse.storage.postgres_schema import ensure_postgres_schema
from cors_config import configure_cors


logger = logging.getLogger("ingest_api")


def create_app(orchestrator=None) -> Flask:
    app = Flask(__name__)
    configure_cors(app)

    def _orchestrator():
        if orchestrator is not None:
            return orchestrator
        cached = app.config.get("ORCHESTRATOR")
        if cached is None:
            settings = IngestSettings.from_env()
            ensure_postgres_schema(settings.pg_dsn)
            cached = build_orchestrator(settings, PostgresActivityStore(settings.pg_dsn))
            app.config["ORCHESTRATOR"] = cached
        return cached

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/ingest", methods=["POST"])
    def ingest():
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({"success": False, "error": "request body must be a JSON object"}), 400
        try:
            ingest_request = parse_ingest_request(payload)
        except RequestValidationError as e:
            return jsonify(error_response(e)), 400

        logger.info(
            "Ingest requested for %s (%s)",
            ingest_request.locality.city,
            ",".join(k.value for k in ingest_request.source_kinds),
        )
        report = _orchestrator().run(ingest_request)
        return jsonify(report.to_response())

    return app


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    port = int(os.environ.get("INGEST_API_PORT", "5050"))
    create_app().run(host="0.0.0.0", port=port)
