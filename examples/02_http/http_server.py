#!/usr/bin/env python3
"""
HTTP Server Example

Serves the standard library HTTP request handler on a tcp port and on a
unix socket, with the same zero-downtime restarts.

What This Example Demonstrates:
- Several listeners handed to every worker, paired by registration order
- With a single listener, listen_and_serve(address, handler) does the same
- Parallel handler shutdown

Running the Example:
    python examples/02_http/http_server.py

    curl http://127.0.0.1:8080/
    curl --unix-socket /tmp/handoff-http.sock http://localhost/
    kill -HUP <master pid>
"""

import os
import pathlib
import sys
from http.server import BaseHTTPRequestHandler

project_root = str(pathlib.Path(__file__).resolve().parents[2])
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from handoff import Config, Server, StreamServerHandler
from handoff.log import create_root_lg

SOCKET_PATH = "/tmp/handoff-http.sock"


class PidRequestHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        body = f"served by worker {os.getpid()}\n".encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        # Request lines go through the worker's logger instead of stderr
        pass


def main() -> int:
    server = Server(
        Config(stop_timeout="5s", parallel_stop=True),
        lg=create_root_lg("debug"),
    )
    server.register("127.0.0.1:8080", StreamServerHandler(PidRequestHandler))
    server.register_unix(SOCKET_PATH, StreamServerHandler(PidRequestHandler))
    return server.run()


if __name__ == "__main__":
    sys.exit(main())
