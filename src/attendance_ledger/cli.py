"""Attendance ledger command line interface.

Usage:
    python -m attendance_ledger serve [--host H] [--port P] [--reload]
    python -m attendance_ledger init-db [--database-url URL]
    python -m attendance_ledger summary --owner-id X --year 2024 --month 4
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Callable
from uuid import UUID

from attendance_ledger.config import get_settings


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class LedgerCli:
    """Attendance ledger command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="python -m attendance_ledger",
            description="Attendance ledger operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        serve = subparsers.add_parser("serve", help="Run the HTTP API")
        serve.add_argument("--host", help="Bind address (default: HOST setting)")
        serve.add_argument("--port", type=int, help="Bind port (default: PORT setting)")
        serve.add_argument("--reload", action="store_true", help="Reload on code changes")

        init_db = subparsers.add_parser("init-db", help="Create missing tables")
        init_db.add_argument("--database-url", help="Override DATABASE_URL")

        summary = subparsers.add_parser("summary", help="Print a month's summary as JSON")
        summary.add_argument("--owner-id", type=parse_uuid, required=True)
        summary.add_argument("--year", type=int, required=True)
        summary.add_argument("--month", type=int, required=True)
        summary.add_argument("--database-url", help="Override DATABASE_URL")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[..., int]] = {
            "serve": self._cmd_serve,
            "init-db": self._cmd_init_db,
            "summary": self._cmd_summary,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        import uvicorn

        settings = get_settings()
        uvicorn.run(
            "attendance_ledger.api.app:app",
            host=args.host or settings.host,
            port=args.port or settings.port,
            reload=args.reload,
            log_level=settings.log_level.lower(),
        )
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        from attendance_ledger.database import create_schema, get_engine

        async def _run() -> None:
            engine = get_engine(args.database_url)
            try:
                await create_schema(engine)
            finally:
                await engine.dispose()

        asyncio.run(_run())
        print("Schema ready.")
        return 0

    def _cmd_summary(self, args: argparse.Namespace) -> int:
        from attendance_ledger.database import get_engine, make_session_factory
        from attendance_ledger.services.ledger_service import LedgerService

        async def _run() -> dict | None:
            engine = get_engine(args.database_url)
            try:
                async with make_session_factory(engine)() as session:
                    service = LedgerService(session)
                    ledger = await service.get_ledger(args.owner_id, args.year, args.month)
                    if ledger is None:
                        return None
                    summary = await service.summarize(ledger.ledger_id)
                    return {
                        "ledger_id": str(ledger.ledger_id),
                        "status": ledger.status,
                        "version": ledger.version,
                        "summary": summary.to_dict(),
                    }
            finally:
                await engine.dispose()

        result = asyncio.run(_run())
        if result is None:
            print(
                f"No ledger for {args.owner_id} in {args.year}-{args.month:02d}",
                file=sys.stderr,
            )
            return 1
        print(json.dumps(result, indent=2))
        return 0


def main() -> int:
    """CLI entry point."""
    cli = LedgerCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
