"""
E2E Routes
Handles /default and /revise: each request runs one end-to-end flow.
"""

import logging
import time
from dataclasses import replace

from flask import Blueprint

from e2e_runner.metrics import E2E_RUN_DURATION, E2E_RUNS
from e2e_runner.services.end_to_end import run_end_to_end

logger = logging.getLogger(__name__)

FAILED_PREFIX = "failed (check server logs for more details): "
TEXT_PLAIN = {"Content-Type": "text/plain; charset=utf-8"}


def create_e2e_blueprint(test_config, run=run_end_to_end):
    """
    Each route gets its own copy of test_config with do_revise fixed, taken
    here at registration time, so concurrent requests never share a flag.
    """
    e2e_bp = Blueprint("e2e", __name__)

    default_config = replace(test_config, do_revise=False)
    revise_config = replace(test_config, do_revise=True)

    @e2e_bp.route("/default", methods=["GET", "POST"])
    def default_e2e():
        """
        Run the default end-to-end flow
        ---
        tags:
          - E2E
        responses:
          200:
            description: Flow succeeded
          500:
            description: Flow failed
        """
        return _trigger("default", default_config, run)

    @e2e_bp.route("/revise", methods=["GET", "POST"])
    def revise_e2e():
        """
        Run the end-to-end flow with a revised code
        ---
        tags:
          - E2E
        responses:
          200:
            description: Flow succeeded
          500:
            description: Flow failed
        """
        return _trigger("revise", revise_config, run)

    return e2e_bp


def _trigger(name, config, run):
    started = time.monotonic()
    try:
        run(config)
    except Exception as e:
        E2E_RUNS.labels(route=name, outcome="failure").inc()
        logger.error("could not run %s end to end: %s", name, e, exc_info=True)
        return FAILED_PREFIX + str(e), 500, TEXT_PLAIN
    finally:
        E2E_RUN_DURATION.labels(route=name).observe(time.monotonic() - started)

    E2E_RUNS.labels(route=name, outcome="success").inc()
    return "ok", 200, TEXT_PLAIN
