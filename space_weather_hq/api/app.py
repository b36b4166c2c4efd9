"""flask application serving the hourly timeline and current advisory."""

import logging
from typing import Optional

import sentry_sdk
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sentry_sdk.integrations.flask import FlaskIntegration

from space_weather_hq.api.auth import require_api_key
from space_weather_hq.api.service import AdvisoryService, summarize_run
from space_weather_hq.config import ApiConfig, DataConfig
from space_weather_hq.errors import IngestionUnavailableError, NoDataYetError, TransportError

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = (
    "No real space weather data available yet. Please wait a moment for the first data fetch, "
    "or check the logs for API errors."
)

# initialize sentry if dsn is configured
if ApiConfig.SENTRY_DSN:
    sentry_sdk.init(
        dsn=ApiConfig.SENTRY_DSN,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.1,
        environment=ApiConfig.ENVIRONMENT,
    )
    logger.info("sentry initialized for error monitoring")


def create_app(service: Optional[AdvisoryService] = None) -> Flask:
    """
    create flask application.

    args:
        service: advisory service (defaults to one backed by the global database)

    returns:
        configured flask app
    """
    app = Flask(__name__)
    CORS(app)  # enable cross-origin requests

    # uses in-memory storage by default
    limiter = Limiter(
        key_func=get_remote_address,
        app=app,
        default_limits=ApiConfig.DEFAULT_LIMITS,
        storage_uri="memory://",
    )

    service = service or AdvisoryService()

    @app.after_request
    def add_security_headers(response):
        """add security headers to all responses."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'"
        return response

    @app.route("/health", methods=["GET"])
    @limiter.exempt
    def health():
        """health check endpoint."""
        return jsonify(service.health_check()), 200

    @app.route("/timeline", methods=["GET"])
    def timeline():
        """hourly buckets ordered by timestamp, newest last."""
        default_hours = DataConfig.LOOKBACK_DAYS * 24
        try:
            hours = int(request.args.get("hours", default_hours))
        except ValueError:
            return jsonify({"error": "hours must be an integer"}), 400
        hours = min(max(hours, 1), ApiConfig.TIMELINE_MAX_HOURS)

        buckets = service.timeline(hours=hours)
        return jsonify({"hours": hours, "count": len(buckets), "data": [b.to_dict() for b in buckets]}), 200

    @app.route("/advisory", methods=["GET"])
    def advisory():
        """current severity advisory derived from the latest bucket."""
        try:
            return jsonify(service.current_advisory()), 200
        except NoDataYetError:
            payload = {
                "status": "no_data",
                "message": NO_DATA_MESSAGE,
                "last_run": summarize_run(service.last_run),
            }
            return jsonify(payload), 503

    @app.route("/ingest", methods=["POST"])
    @limiter.limit("10 per minute")
    @require_api_key
    def ingest():
        """trigger one ingestion run."""
        try:
            result = service.trigger_ingestion()
        except TransportError as e:
            return jsonify({"status": "failure", "error": str(e), "status_code": e.status_code}), 502
        except IngestionUnavailableError as e:
            return jsonify({"error": str(e)}), 503

        summary = summarize_run(result)
        status = result.get("status")
        if status == "skipped":
            return jsonify({"status": "skipped", "reason": result.get("reason")}), 409
        if status == "failure":
            return jsonify(summary), 502
        return jsonify(summary), 200

    return app
