import os
import tempfile
import unittest

from prometheus_client import REGISTRY

from e2e_runner.app import create_app
from e2e_runner.config import DatabaseConfig, E2ERunnerConfig, E2ETestConfig
from e2e_runner.extensions import db

ADMIN_API = "http://admin-api.test"
API_SERVER = "http://api-server.test"


def make_config(db_url):
    return E2ERunnerConfig(
        database=DatabaseConfig(url=db_url),
        test_config=E2ETestConfig(
            verification_admin_api_server=ADMIN_API,
            verification_api_server=API_SERVER,
        ),
        api_key_database_hmac="test-secret",
    )


class DatabaseTestCase(unittest.TestCase):
    """Fresh file-backed SQLite database per test, shared by all threads."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        db_path = os.path.join(self._tmp.name, "e2e.db")
        self.config = make_config(f"sqlite:///{db_path}")
        self.app = create_app(self.config, create_schema=True)

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.engine.dispose()
        self._tmp.cleanup()


def metric_value(name, **labels):
    """Current value of a sample in the default registry, 0 if never recorded."""
    return REGISTRY.get_sample_value(name, labels) or 0.0
