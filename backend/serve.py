#!/usr/bin/env python3
"""
Loopback server for the desktop shell.

Binds 127.0.0.1 (PORT=0 picks a free port), writes the bound port to
PORT_FILE so the shell can find it, then serves the WSGI app.
Run:
    python serve.py [--port 0] [--port-file /tmp/sarupaa.port]
"""

from __future__ import annotations

import argparse
import os
import sys

from werkzeug.serving import make_server

sys.path.insert(0, os.path.dirname(__file__))

from sarupaa import create_app


LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1"}


def write_port_file(path: str, port: int) -> None:
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as fh:
        fh.write(str(port))
    os.replace(tmp_path, path)


def main(argv=None) -> int:
    app = create_app()

    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default=app.config["HOST"], help="Loopback host to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=app.config["PORT"], help="Port (default: 0, OS assigned)")
    parser.add_argument("--port-file", default=app.config["PORT_FILE"], help="File receiving the bound port")
    args = parser.parse_args(argv)

    if args.host not in LOOPBACK_HOSTS:
        parser.error(f"refusing to bind non-loopback host {args.host!r}")

    server = make_server(args.host, args.port, app, threaded=True)
    port = server.server_port

    if args.port_file:
        write_port_file(args.port_file, port)

    app.logger.info("Sarupaa API listening on http://%s:%s", args.host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        app.logger.info("Shutting down")
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
