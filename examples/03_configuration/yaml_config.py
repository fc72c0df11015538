#!/usr/bin/env python3
"""
YAML Configuration Example

Loads lifecycle settings from examples/etc/handoff.yaml, with environment
variable overrides, and runs a counting server with them.

Running the Example:
    python examples/03_configuration/yaml_config.py
    HANDOFF_STOP_TIMEOUT=2s python examples/03_configuration/yaml_config.py

    nc 127.0.0.1 9002           # prints the number of requests served
"""

import pathlib
import socketserver
import sys
import threading

project_root = pathlib.Path(__file__).resolve().parents[2]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import yaml

from handoff import ConfigError, Server, StreamServerHandler, load_config
from handoff.log import create_root_lg

CONFIG_FILE = project_root / "examples" / "etc" / "handoff.yaml"


class Counter(socketserver.StreamRequestHandler):
    """Reply with the number of requests this worker has served."""

    lock = threading.Lock()
    served = 0

    def handle(self):
        with Counter.lock:
            Counter.served += 1
            served = Counter.served
        self.wfile.write(f"{served}\n".encode())


def log_level() -> str:
    with open(CONFIG_FILE) as f:
        return yaml.safe_load(f).get("logging", {}).get("level", "info")


def main() -> int:
    lg = create_root_lg(log_level())
    try:
        config = load_config(CONFIG_FILE)
    except ConfigError as e:
        lg.error("invalid configuration", extra={"exception": e})
        return 2

    lg.debug("configuration loaded", extra=config.model_dump())
    server = Server(config, lg=lg)
    server.register("127.0.0.1:9002", StreamServerHandler(Counter))
    return server.run()


if __name__ == "__main__":
    sys.exit(main())
