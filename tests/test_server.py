import threading
from unittest import mock

import requests
from werkzeug.serving import make_server

from e2e_runner.server import serve

from tests.base import DatabaseTestCase


class TestServe(DatabaseTestCase):
    def test_serves_until_shutdown(self):
        shutdown = threading.Event()
        ports = []

        def record_port(*args, **kwargs):
            srv = make_server(*args, **kwargs)
            ports.append(srv.server_port)
            return srv

        with mock.patch("e2e_runner.server.make_server", side_effect=record_port):
            worker = threading.Thread(target=serve, args=(self.app, 0, shutdown), kwargs={"host": "127.0.0.1"})
            worker.start()
            try:
                for _ in range(100):
                    if ports:
                        break
                    shutdown.wait(0.05)
                resp = requests.get(f"http://127.0.0.1:{ports[0]}/health", timeout=5)
                self.assertEqual(resp.status_code, 200)
            finally:
                shutdown.set()
                worker.join(10)

        self.assertFalse(worker.is_alive())
