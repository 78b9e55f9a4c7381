"""
Graceful serving: runs a threaded werkzeug server until the shutdown event fires.
"""

import logging
import threading

from werkzeug.serving import make_server

logger = logging.getLogger(__name__)


def serve(app, port, shutdown_event, host="0.0.0.0"):
    srv = make_server(host, port, app, threaded=True)
    worker = threading.Thread(target=srv.serve_forever, name="http-server", daemon=True)
    worker.start()
    logger.info("server listening on %s:%s", host, srv.server_port)

    try:
        while not shutdown_event.wait(0.5):
            if not worker.is_alive():
                raise RuntimeError("http server stopped unexpectedly")
    finally:
        logger.info("server shutting down")
        srv.shutdown()
        worker.join()
        srv.server_close()
