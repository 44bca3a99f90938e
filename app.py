#!/usr/bin/env python3
"""
PharmaShield Verification Engine - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Commands:
- serve    run the HTTP API (uvicorn)
- verify   verify one batch from the command line
- init-db  create the relational schema

============================================================
USAGE
============================================================
    python app.py init-db
    python app.py verify BATCH-001 --lat 52.52 --lng 13.40
    python app.py verify BATCH-001 --inspect
    python app.py serve --host 0.0.0.0 --port 8000

Environment-based configuration (.env is read):
    DATABASE_URL=postgresql://... LOG_LEVEL=DEBUG python app.py serve

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from core.exceptions import ValidationError
from core.models import Coordinates
from database.engine import create_database_engine, initialize_database
from verification.config import VerificationConfig
from verification.orchestrator import build_orchestrator


logger = logging.getLogger("pharmashield")


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pharmashield",
        description="Batch verification and scan risk assessment engine",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override LOG_LEVEL",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    verify = subparsers.add_parser("verify", help="Verify one batch")
    verify.add_argument("batch_id")
    verify.add_argument("--lat", type=float, default=None, help="Latitude of the scan")
    verify.add_argument("--lng", type=float, default=None, help="Longitude of the scan")
    verify.add_argument(
        "--inspect",
        action="store_true",
        help="Inspection mode: do not record the scan or emit alerts",
    )
    verify.add_argument("--actor-id", default=None, help="Scanner user id")

    subparsers.add_parser("init-db", help="Create database tables")

    return parser


def validate_args(args: argparse.Namespace) -> List[str]:
    """Validate parsed arguments, returning error messages."""
    errors = []
    if args.command == "verify" and (args.lat is None) != (args.lng is None):
        errors.append("--lat and --lng must be given together")
    return errors


# ============================================================
# COMMANDS
# ============================================================

async def run_verify(args: argparse.Namespace, config: VerificationConfig) -> int:
    coords = Coordinates(lat=args.lat, lng=args.lng) if args.lat is not None else None
    orchestrator = build_orchestrator(config)
    try:
        outcome = await orchestrator.verify(
            args.batch_id,
            coords=coords,
            persist=not args.inspect,
            actor_id=args.actor_id,
        )
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    finally:
        await orchestrator.close()

    print(json.dumps(outcome.to_dict(), indent=2, default=str))
    return 0


async def run_init_db(config: VerificationConfig) -> int:
    engine = create_database_engine(config.database_url)
    try:
        await initialize_database(engine)
    finally:
        await engine.dispose()
    return 0


def run_serve(args: argparse.Namespace, config: VerificationConfig) -> int:
    import uvicorn

    from api.main import create_app

    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_level=config.log_level.lower(),
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    config = VerificationConfig.from_env()
    setup_logging(args.log_level or config.log_level)
    logger.debug(f"Configuration: {config.to_dict()}")

    if args.command == "serve":
        return run_serve(args, config)
    if args.command == "verify":
        return asyncio.run(run_verify(args, config))
    if args.command == "init-db":
        return asyncio.run(run_init_db(config))

    parser.print_help()
    return 1


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
