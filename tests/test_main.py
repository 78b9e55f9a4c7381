import os
import signal
import threading
import unittest
from unittest import mock

from e2e_runner import main as runner_main
from e2e_runner.config import load_config
from e2e_runner.errors import ConfigError, ProvisioningError

BASE_ENV = {
    "E2E_ADMIN_API_SERVER": "https://admin.example.test",
    "E2E_API_SERVER": "https://api.example.test",
}


def make_teardown(finished=True):
    teardown = mock.Mock()
    teardown.wait.return_value = finished
    return teardown


class TestRealMain(unittest.TestCase):
    def setUp(self):
        with mock.patch.dict(os.environ, BASE_ENV, clear=True):
            self.config = load_config(dotenv=False)
        self.shutdown = threading.Event()
        self.teardown = make_teardown()

        patches = {
            "create_app": mock.patch.object(runner_main, "create_app"),
            "setup": mock.patch.object(runner_main, "setup", return_value=self.teardown),
            "register": mock.patch.object(runner_main, "register_e2e_routes"),
            "serve": mock.patch.object(runner_main, "serve"),
        }
        self.mocks = {}
        for name, patcher in patches.items():
            self.mocks[name] = patcher.start()
            self.addCleanup(patcher.stop)

    def test_tears_down_after_serving(self):
        runner_main.real_main(self.config, self.shutdown)

        app = self.mocks["create_app"].return_value
        self.mocks["setup"].assert_called_once_with(app, self.config, self.shutdown)
        self.mocks["register"].assert_called_once_with(app, self.config.test_config)
        self.mocks["serve"].assert_called_once_with(app, self.config.port, self.shutdown)
        self.teardown.assert_called_once_with()
        self.teardown.wait.assert_called_once_with(runner_main.TEARDOWN_TIMEOUT)

    def test_tears_down_when_serving_fails(self):
        self.mocks["serve"].side_effect = OSError("address already in use")

        with self.assertRaises(OSError):
            runner_main.real_main(self.config, self.shutdown)

        self.teardown.assert_called_once_with()
        self.teardown.wait.assert_called_once()

    def test_setup_failure_skips_serving(self):
        self.mocks["setup"].side_effect = ProvisioningError("no database")

        with self.assertRaises(ProvisioningError):
            runner_main.real_main(self.config, self.shutdown)

        self.mocks["register"].assert_not_called()
        self.mocks["serve"].assert_not_called()

    def test_teardown_timeout_is_logged(self):
        self.teardown.wait.return_value = False

        with self.assertLogs("e2e_runner", level="ERROR") as logs:
            runner_main.real_main(self.config, self.shutdown)
        self.assertIn("timed out waiting for API key cleanup", "\n".join(logs.output))


class TestMain(unittest.TestCase):
    def setUp(self):
        patches = [
            mock.patch.dict(os.environ, BASE_ENV, clear=True),
            mock.patch.object(runner_main, "configure_logging"),
            mock.patch.object(runner_main, "install_signal_handlers"),
            mock.patch.object(runner_main, "load_config", side_effect=lambda: load_config(dotenv=False)),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_config_error_exits_nonzero(self):
        with mock.patch.object(runner_main, "load_config", side_effect=ConfigError("bad")):
            self.assertEqual(runner_main.main(), 1)

    def test_setup_error_exits_nonzero(self):
        with mock.patch.object(runner_main, "create_app"), \
                mock.patch.object(runner_main, "setup", side_effect=ProvisioningError("no db")), \
                mock.patch.object(runner_main, "serve") as serve:
            with self.assertLogs("e2e_runner", level="CRITICAL"):
                self.assertEqual(runner_main.main(), 1)
        serve.assert_not_called()

    def test_serve_error_exits_nonzero_after_teardown(self):
        teardown = make_teardown()
        with mock.patch.object(runner_main, "create_app"), \
                mock.patch.object(runner_main, "setup", return_value=teardown), \
                mock.patch.object(runner_main, "register_e2e_routes"), \
                mock.patch.object(runner_main, "serve", side_effect=RuntimeError("crashed")):
            with self.assertLogs("e2e_runner", level="CRITICAL"):
                self.assertEqual(runner_main.main(), 1)
        teardown.assert_called_once_with()

    def test_clean_shutdown_exits_zero(self):
        teardown = make_teardown()
        with mock.patch.object(runner_main, "create_app"), \
                mock.patch.object(runner_main, "setup", return_value=teardown), \
                mock.patch.object(runner_main, "register_e2e_routes"), \
                mock.patch.object(runner_main, "serve"):
            self.assertEqual(runner_main.main(), 0)
        teardown.assert_called_once_with()


class TestSignalHandlers(unittest.TestCase):
    def test_signals_set_shutdown_event(self):
        shutdown = threading.Event()

        with mock.patch.object(runner_main.signal, "signal") as install:
            runner_main.install_signal_handlers(shutdown)

        handlers = {call.args[0]: call.args[1] for call in install.call_args_list}
        self.assertEqual(set(handlers), {signal.SIGINT, signal.SIGTERM})

        handlers[signal.SIGTERM](signal.SIGTERM, None)
        self.assertTrue(shutdown.is_set())
