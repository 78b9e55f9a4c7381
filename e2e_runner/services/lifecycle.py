"""
Lifecycle Service
Sets up the e2e environment on a background thread and tears it down.

    teardown = setup(app, config, shutdown_event)   # blocks until keys exist
    ...                                             # serve / run tests
    teardown()                                      # revoke keys (async)
    teardown.wait()                                 # optional: block until revoked

The background thread owns the database session for its whole life. Revocations
are pushed on an ExitStack as keys are created, so they run in reverse order
(device, then admin) whether the thread exits on failure, on teardown() or on
the shutdown event.
"""

import logging
import threading
from concurrent.futures import Future, InvalidStateError
from contextlib import ExitStack
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from e2e_runner.errors import E2ERunnerError, ProvisioningError
from e2e_runner.metrics import REVOCATIONS, SETUP_RESULTS
from e2e_runner.services.database import SYSTEM, Database
from e2e_runner.services.provisioner import REALM_NAME, REALM_REGION_CODE, provision

logger = logging.getLogger(__name__)

# threading has no wait-for-any across two Events, so the waiting thread
# sleeps on its own done event and re-checks the caller's shutdown event
# at this interval
WAIT_INTERVAL = 0.25


class Teardown:
    """Handle returned by setup(). Calling it more than once is harmless."""

    def __init__(self, done, thread):
        self._done = done
        self._thread = thread

    def __call__(self):
        self._done.set()

    def wait(self, timeout=None):
        """Blocks until the keys are revoked; returns False on timeout."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def finished(self):
        return not self._thread.is_alive()


def setup(app, config, shutdown_event=None, realm_name=REALM_NAME, region_code=REALM_REGION_CODE):
    """
    Provisions the test realm and API keys and stores the keys in
    config.test_config. Returns a Teardown; raises ProvisioningError when
    the environment could not be created (nothing is left live in that case).
    """
    ready = Future()
    done = threading.Event()
    shutdown = shutdown_event if shutdown_event is not None else threading.Event()

    thread = threading.Thread(
        target=_run,
        args=(app, config, ready, done, shutdown, realm_name, region_code),
        name="e2e-setup",
        daemon=True,
    )
    thread.start()

    try:
        ready.result()
    except Exception:
        SETUP_RESULTS.labels(outcome="failure").inc()
        done.set()
        thread.join()
        raise
    SETUP_RESULTS.labels(outcome="success").inc()
    return Teardown(done, thread)


def _signal(ready, error=None):
    # Readiness is reported once; a second report is a bug, not a state change
    try:
        if error is None:
            ready.set_result(None)
        else:
            ready.set_exception(error)
    except InvalidStateError:
        logger.error("readiness already reported, dropping %r", error)


def _run(app, config, ready, done, shutdown, realm_name, region_code):
    # Whatever happens on this thread, the caller blocked in setup() must be released
    try:
        _provision_and_hold(app, config, ready, done, shutdown, realm_name, region_code)
    except Exception as e:
        logger.error("e2e setup thread failed: %s", e, exc_info=True)
        if not ready.done():
            _signal(ready, ProvisioningError(f"unexpected error during setup: {e}"))
    finally:
        if not ready.done():
            _signal(ready, ProvisioningError("setup ended without reporting readiness"))


def _provision_and_hold(app, config, ready, done, shutdown, realm_name, region_code):
    db = Database(app, config.api_key_database_hmac)
    try:
        db.open()
    except E2ERunnerError as e:
        _signal(ready, ProvisioningError(f"failed to connect to database: {e}"))
        return

    try:
        with ExitStack() as cleanups:
            def register(api_key, label):
                cleanups.callback(_revoke, db, api_key, label)

            try:
                admin_key, device_key = provision(
                    db, realm_name, region_code, on_created=register
                )
            except ProvisioningError as e:
                _signal(ready, e)
                return

            config.test_config = replace(
                config.test_config,
                verification_admin_api_key=admin_key,
                verification_api_server_key=device_key,
            )
            _signal(ready)
            logger.info("e2e environment ready in realm %r", realm_name)

            while not (done.is_set() or shutdown.is_set()):
                done.wait(WAIT_INTERVAL)
            logger.info("tearing down e2e environment")
    finally:
        db.close()


def _revoke(db, api_key, label):
    try:
        app = db.find_authorized_app_by_api_key(api_key)
    except (E2ERunnerError, SQLAlchemyError) as e:
        REVOCATIONS.labels(key_type=label, outcome="failure").inc()
        logger.error("%s API key cleanup failed: %s", label, e)
        return

    app.disable(datetime.now(timezone.utc))
    try:
        db.save_authorized_app(app, SYSTEM)
    except E2ERunnerError as e:
        REVOCATIONS.labels(key_type=label, outcome="failure").inc()
        logger.error("%s API key disable failed: %s", label, e)
        return
    REVOCATIONS.labels(key_type=label, outcome="success").inc()
    logger.info("successfully cleaned up e2e test %s key", label)
