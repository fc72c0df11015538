#!/usr/bin/env python3
"""
Echo Server Example

A line echo server that can be restarted without dropping connections.

What This Example Demonstrates:
- Registering a socketserver request handler on a tcp address
- Running the same script as master and as worker
- Restarting workers with SIGHUP

Running the Example:
    python examples/01_basics/echo_server.py

    # In another terminal
    echo hello | nc 127.0.0.1 9001
    kill -HUP <master pid>     # replace the worker
    kill <master pid>          # stop everything

Expected Output:
    The master logs "listening" and "worker spawned"; each worker logs
    "worker serving". After SIGHUP a second worker starts, retires the
    first one, and the first logs "worker stopped".
"""

import os
import pathlib
import socketserver
import sys

project_root = str(pathlib.Path(__file__).resolve().parents[2])
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from handoff import Server, StreamServerHandler, is_worker
from handoff.log import create_root_lg


class EchoHandler(socketserver.StreamRequestHandler):
    """Echo every line back, prefixed with the serving worker's pid."""

    def handle(self):
        for line in self.rfile:
            self.wfile.write(f"[{os.getpid()}] ".encode() + line)


def main() -> int:
    lg = create_root_lg("info")
    if not is_worker():
        lg.info("send SIGHUP to restart", extra={"pid": os.getpid()})

    server = Server(lg=lg)
    server.register("127.0.0.1:9001", StreamServerHandler(EchoHandler))
    return server.run()


if __name__ == "__main__":
    sys.exit(main())
