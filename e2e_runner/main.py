"""
E2E Runner — Main entry point
Provisions test API keys, serves /default and /revise until interrupted,
then revokes the keys.
"""

import logging
import signal
import sys
import threading

from e2e_runner.app import create_app, register_e2e_routes
from e2e_runner.config import load_config
from e2e_runner.errors import E2ERunnerError
from e2e_runner.server import serve
from e2e_runner.services.lifecycle import setup

logger = logging.getLogger("e2e_runner")

# Upper bound on waiting for key revocation at shutdown
TEARDOWN_TIMEOUT = 30


def configure_logging(debug):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def install_signal_handlers(shutdown_event):
    def _handle(signum, _frame):
        logger.info("received signal %s, shutting down", signal.Signals(signum).name)
        shutdown_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def real_main(config, shutdown_event):
    app = create_app(config)

    # Setup database and authorized apps
    teardown = setup(app, config, shutdown_event)
    try:
        register_e2e_routes(app, config.test_config)
        serve(app, config.port, shutdown_event)
    finally:
        teardown()
        if not teardown.wait(TEARDOWN_TIMEOUT):
            logger.error("timed out waiting for API key cleanup")


def main():
    try:
        config = load_config()
    except E2ERunnerError as e:
        configure_logging(False)
        logger.critical("failed to process e2e-runner config: %s", e)
        return 1

    configure_logging(config.log_debug)
    logger.info("starting e2e-runner build_id=%s build_tag=%s", config.build_id, config.build_tag)

    shutdown_event = threading.Event()
    install_signal_handlers(shutdown_event)

    try:
        real_main(config, shutdown_event)
    except E2ERunnerError as e:
        logger.critical("failed to setup database and authorized apps: %s", e)
        return 1
    except Exception:
        logger.critical("e2e-runner exited with an error", exc_info=True)
        return 1

    logger.info("successful shutdown")
    return 0


if __name__ == "__main__":
    sys.exit(main())
