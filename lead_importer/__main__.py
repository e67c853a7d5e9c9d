"""``python -m lead_importer`` runs the import CLI under its module name."""
from __future__ import annotations

import sys

from .cli import build_parser, main as run_cli

PROG = "python -m lead_importer"


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if args:
        return run_cli(args, prog=PROG)

    # A bare invocation lists the subcommands instead of an argparse error.
    build_parser(prog=PROG).print_help()
    return 2


if __name__ == "__main__":  # pragma: no cover - module entry point
    sys.exit(main())
