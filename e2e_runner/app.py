import logging
import time
import uuid

from flask import Flask, Response, g, request
from flasgger import Swagger
from sqlalchemy import text

from e2e_runner.extensions import db
from e2e_runner.metrics import render_latest
from e2e_runner import models  # noqa: F401  (register models)
from e2e_runner.routes.e2e import create_e2e_blueprint
from e2e_runner.services.end_to_end import run_end_to_end

access_logger = logging.getLogger("e2e_runner.access")

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(config, create_schema=None):
    """
    Builds the Flask app and binds the database. The e2e routes are
    registered separately, once setup() has put the API keys in config.
    """
    app = Flask(__name__)

    # Configuration
    app.config["SQLALCHEMY_DATABASE_URI"] = config.database.url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["DEBUG"] = config.dev_mode

    # Initialize Extensions
    db.init_app(app)
    Swagger(app)

    # Schema is owned by the verification server; only dev/test creates it
    if create_schema is None:
        create_schema = config.dev_mode
    if create_schema:
        with app.app_context():
            db.create_all()

    @app.before_request
    def populate_request_id():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        g.request_started = time.monotonic()

    @app.after_request
    def log_request(response):
        response.headers[REQUEST_ID_HEADER] = g.request_id
        access_logger.info(
            '%s "%s %s %s" %s %s %.1fms request_id=%s',
            request.remote_addr or "-",
            request.method,
            request.full_path.rstrip("?"),
            request.environ.get("SERVER_PROTOCOL", "HTTP/1.1"),
            response.status_code,
            response.content_length or "-",
            (time.monotonic() - g.request_started) * 1000,
            g.request_id,
        )
        return response

    @app.route("/health")
    def health():
        try:
            db.session.execute(text("SELECT 1"))
            return {"service": "e2e-runner", "status": "healthy"}, 200
        except Exception as e:
            return {"service": "e2e-runner", "status": "unhealthy", "error": str(e)}, 503

    if config.metrics_enabled:
        @app.route("/metrics")
        def metrics():
            body, content_type = render_latest()
            return Response(body, content_type=content_type)

    return app


def register_e2e_routes(app, test_config, run=run_end_to_end):
    app.register_blueprint(create_e2e_blueprint(test_config, run=run))
