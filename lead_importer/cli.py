"""Command line interface for importing lead spreadsheets."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import ImportSettings, load_configuration
from .errors import LeadImportError
from .factory import build_authorizer, build_store
from .ingestion import export_summary, load_raw_records
from .models import ConflictStrategy
from .orchestrator import ImportOrchestrator

LOGGER = logging.getLogger(__name__)


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Import leads from a spreadsheet, resolving conflicts with existing leads",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("input", help="Path to the input spreadsheet (CSV, TSV or XLSX)")
    common.add_argument(
        "--config",
        default=None,
        help="Path to the import configuration file (YAML or JSON); without it an in-memory store is used",
    )
    common.add_argument("--principal", default=None, help="Identifier of the user running the import")
    common.add_argument(
        "--default",
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Default value for a blank column, e.g. --default lead_source=fair-2024 (repeatable)",
    )
    common.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )

    import_parser = subparsers.add_parser("import", parents=[common], help="Import leads into the store")
    import_parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in ConflictStrategy],
        default=None,
        help="Conflict strategy for emails that already exist (defaults to the configured strategy)",
    )
    import_parser.add_argument(
        "--decisions",
        default=None,
        help="JSON file mapping individual emails to a conflict strategy",
    )
    import_parser.add_argument("--report", default=None, help="Write sampled skips and failures to CSV/XLSX")

    subparsers.add_parser("preview", parents=[common], help="List conflicts without writing anything")
    return parser


def parse_args(argv: list[str] | None = None, prog: Optional[str] = None) -> argparse.Namespace:
    return build_parser(prog).parse_args(argv)


def _parse_defaults(pairs: list[str]) -> Dict[str, str]:
    defaults: Dict[str, str] = {}
    for pair in pairs:
        field, separator, value = pair.partition("=")
        if not separator or not field.strip():
            raise ValueError(f"Invalid --default '{pair}'; expected FIELD=VALUE")
        defaults[field.strip()] = value
    return defaults


def _load_decisions(path: Optional[str]) -> Optional[Dict[str, Any]]:
    if not path:
        return None
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("The decisions file must contain a JSON object of email -> strategy")
    return data


async def _run(args: argparse.Namespace) -> Dict[str, Any]:
    config = load_configuration(args.config) if args.config else {}
    settings = ImportSettings.from_config(config)
    records = load_raw_records(args.input, defaults=_parse_defaults(args.default))

    store = await build_store(config)
    authorizer = await build_authorizer(config)
    orchestrator = ImportOrchestrator(store, authorizer=authorizer, settings=settings)

    if args.command == "preview":
        report = await orchestrator.preview(records, principal=args.principal)
        return report.as_dict()

    summary = await orchestrator.import_leads(
        records,
        args.strategy,
        _load_decisions(args.decisions),
        principal=args.principal,
    )
    if args.report:
        destination = export_summary(summary, args.report)
        LOGGER.info("Import report written to %s", destination.resolve())
    return summary.as_dict()


def main(argv: list[str] | None = None, prog: Optional[str] = None) -> int:
    args = parse_args(argv, prog)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        payload = asyncio.run(_run(args))
    except (LeadImportError, ValueError, OSError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1

    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
