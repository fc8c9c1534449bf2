"""CLI entry point: python -m apikey_gate."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from apikey_gate import serve
from apikey_gate.constants import DEFAULT_HEADER, DEFAULT_IDENTITY_HEADER, DEFAULT_PREFIX
from apikey_gate.store import InMemoryRecordStore, load_records

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the apikey-gate CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m apikey_gate",
        description="Serve a demo application protected by the API key gate.",
    )

    parser.add_argument(
        "--records",
        required=True,
        type=Path,
        help="Path to a JSON file of identity records.",
    )

    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host address (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port (default: 8000, range: 1-65535).",
    )

    # Credential options
    parser.add_argument(
        "--header",
        default=DEFAULT_HEADER,
        help=f'Header carrying the API key (default: "{DEFAULT_HEADER}").',
    )
    parser.add_argument(
        "--prefix",
        default=DEFAULT_PREFIX,
        help=f'Literal prefix in front of the key (default: "{DEFAULT_PREFIX}").',
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds allowed for each record store lookup (default: no limit).",
    )

    # Claim stage options
    parser.add_argument(
        "--jwt-secret",
        default=None,
        help="Secret verifying the identity token (falls back to JWT_SECRET).",
    )
    parser.add_argument(
        "--jwt-algorithm",
        default="HS256",
        help='Identity token algorithm (default: "HS256").',
    )
    parser.add_argument(
        "--identity-header",
        default=DEFAULT_IDENTITY_HEADER,
        help=f'Header carrying the identity token (default: "{DEFAULT_IDENTITY_HEADER}").',
    )

    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="INFO",
        help="Logging level (default: INFO).",
    )

    return parser


def _validate_port(port: int, parser: argparse.ArgumentParser) -> None:
    """Validate port is in range 1-65535."""
    if port < 1 or port > 65535:
        parser.error(f"--port must be in range 1-65535, got {port}")


def main() -> None:
    """CLI entry point.

    Exit codes:
        0 - Normal shutdown
        1 - Invalid arguments (missing records file, no JWT secret, bad timeout)
        2 - Startup failure (argparse error, unreadable records, serve() exception)
    """
    parser = _build_parser()
    args = parser.parse_args()

    _validate_port(args.port, parser)

    records_path: Path = args.records
    if not records_path.is_file():
        print(f"Error: --records '{records_path}' is not a file.", file=sys.stderr)
        sys.exit(1)

    if args.timeout is not None and args.timeout <= 0:
        print(f"Error: --timeout must be positive, got {args.timeout}.", file=sys.stderr)
        sys.exit(1)

    jwt_key = args.jwt_secret or os.environ.get("JWT_SECRET")
    if not jwt_key:
        print("Error: --jwt-secret or JWT_SECRET is required.", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        records = load_records(records_path)
    except Exception:
        logger.exception("Could not load records from '%s'.", records_path)
        sys.exit(2)

    if not records:
        logger.warning("No identity records in '%s'; every request will be denied.", records_path)
    else:
        logger.info("Loaded %d identity record(s) from '%s'.", len(records), records_path)

    try:
        serve(
            InMemoryRecordStore(records),
            jwt_key=jwt_key,
            host=args.host,
            port=args.port,
            header=args.header,
            prefix=args.prefix,
            identity_header=args.identity_header,
            jwt_algorithm=args.jwt_algorithm,
            timeout=args.timeout,
            log_level=args.log_level,
        )
    except Exception:
        logger.exception("Server startup failed.")
        sys.exit(2)


if __name__ == "__main__":
    main()
