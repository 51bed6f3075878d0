#!/usr/bin/env python3
"""
Dev runner for the Studycore API.
Usage: python scripts/dev.py [--port 8000] [--no-reload]
"""

import argparse
import os
import socket
import sys
from pathlib import Path

import uvicorn

ROOT = Path(__file__).resolve().parent.parent
BACKEND_PORT = int(os.environ.get("BACKEND_PORT", "8000"))


def port_in_use(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(("127.0.0.1", port)) == 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the Studycore API with uvicorn")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=BACKEND_PORT)
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    args = parser.parse_args(argv)

    os.chdir(ROOT)
    sys.path.insert(0, str(ROOT))

    if port_in_use(args.port):
        print(f"Port {args.port} is in use. Stop the process or set BACKEND_PORT=<port>")
        sys.exit(1)

    print()
    print(f"  API:      http://localhost:{args.port}")
    print(f"  Docs:     http://localhost:{args.port}/docs")
    print(f"  Database: {os.environ.get('DATABASE_URL', 'sqlite:///./studycore.db')}")
    print()

    uvicorn.run(
        "server.app:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
