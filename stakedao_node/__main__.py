# stakedao_node/__main__.py
"""
Entry point for running the node as a module:
    python -m stakedao_node [--host 127.0.0.1] [--port 8000] [--state-dir ./data]
                            [--config-dir .]
Env toggles:
  DAO_STATE_DIR=...    -> snapshot directory (enables persistence with --state-dir)
  DAO_LOG_LEVEL=DEBUG  -> log verbosity
  DAO_NODE_SECRET=...  -> seeds organization authority keys
"""

from __future__ import annotations

import argparse
import os

import uvicorn

from .config import configure_logging, get_bind_host, get_bind_port, load_config
from .dao_api import create_app
from .executor import DaoExecutor


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="stakedao-node",
        description="Run the StakeDAO governance node (HTTP API)",
    )
    p.add_argument("--config-dir", default=os.getcwd(), help="Directory holding stakedao_config.yaml")
    p.add_argument("--host", default=None, help="Bind address (default: server.host)")
    p.add_argument("--port", type=int, default=None, help="HTTP port (default: server.port)")
    p.add_argument(
        "--state-dir",
        default=None,
        help="Persist snapshots under this directory (overrides persistence.state_dir)",
    )
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    cfg = load_config(args.config_dir)
    if args.state_dir:
        cfg["persistence"]["enabled"] = True
        cfg["persistence"]["state_dir"] = args.state_dir
    configure_logging(cfg)

    app = create_app(DaoExecutor(cfg), cfg)
    uvicorn.run(
        app,
        host=args.host or get_bind_host(cfg),
        port=args.port or get_bind_port(cfg),
        log_level=str(cfg["logging"]["level"]).lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
