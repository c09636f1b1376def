"""Run the NoteSage API under uvicorn.

Command-line options are passed to the app factory through NOTESAGE_*
environment variables, since uvicorn builds the app itself (and again on
every reload).
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

import uvicorn

DEFAULT_HOST = "127.0.0.1"
SERVICE_HOST = "0.0.0.0"
DEFAULT_PORT = 8742


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notesage-server",
        description="Serve the NoteSage HTTP API for one notes project",
    )
    parser.add_argument("--host", default=None, help=f"Bind host (default: {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Bind port (default: {DEFAULT_PORT})")
    parser.add_argument("--project", type=Path, default=None, help="Project directory (default: search from cwd)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument(
        "--service",
        action="store_true",
        help=f"Expose the API to other hosts: bind {SERVICE_HOST}, enable CORS and API key auth",
    )
    parser.add_argument("--api-key", default=None, help="Key clients must send in X-API-Key")
    parser.add_argument("--cors-origins", default=None, help="Comma-separated allowed origins (default: *)")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="uvicorn log level",
    )
    return parser


def export_options(args: argparse.Namespace, environ: dict[str, str] | None = None) -> str:
    """Write factory options into environ and return the host to bind."""
    env = os.environ if environ is None else environ

    if args.project is not None:
        env["NOTESAGE_PROJECT"] = str(args.project.resolve())
    if args.service:
        env["NOTESAGE_SERVICE_MODE"] = "1"
    if args.api_key:
        env["NOTESAGE_API_KEY"] = args.api_key
    if args.cors_origins:
        env["NOTESAGE_CORS_ORIGINS"] = args.cors_origins

    if args.host:
        return args.host
    return SERVICE_HOST if args.service else DEFAULT_HOST


def main(argv: list[str] | None = None) -> None:
    """Start the NoteSage API server."""
    args = build_parser().parse_args(argv)
    host = export_options(args)

    uvicorn.run(
        "notesage.api.app:create_app",
        factory=True,
        host=host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
