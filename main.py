"""Marutto Case File - dev launcher and terminal client."""

import argparse
import asyncio
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def serve(reload: bool) -> None:
    cmd = [sys.executable, "-m", "uvicorn", "backend.app:app", "--host", HOST, "--port", PORT]
    if reload:
        cmd.append("--reload")

    print(f"Starting backend on http://localhost:{PORT} ...")
    proc = subprocess.Popen(cmd, cwd=ROOT)

    def shutdown(*_):
        print("\nShutting down...")
        proc.terminate()
        proc.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)
    proc.wait()


def play(url: str) -> None:
    from marutto.client import ChatClient
    from marutto.terminal import TerminalApp

    app = TerminalApp(ChatClient(url))
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\nCase file closed.")


def main():
    from marutto.config import server_url

    parser = argparse.ArgumentParser(description="Marutto Case File")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_p = sub.add_parser("serve", help="Run the chat server")
    serve_p.add_argument("--reload", action="store_true", help="Restart on code changes")

    play_p = sub.add_parser("play", help="Play a case in the terminal")
    play_p.add_argument("--url", default=server_url(),
                        help="Server to talk to (default: $MARUTTO_URL or http://localhost:13013)")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        serve(args.reload)
    else:
        play(args.url)


if __name__ == "__main__":
    main()
