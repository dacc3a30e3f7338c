"""vmcode-dbg CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List

from mcode.config import ProviderConfig

from .commands import CommandRegistry, build_registry
from .context import InspectorContext
from .repl import InspectorREPL

LOG = logging.getLogger("vmcode_dbg.cli")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="vmcode side-car inspector")
    parser.add_argument("source", nargs="?", help="Assembly source to open on start")
    parser.add_argument("--json", action="store_true", help="Emit JSON output")
    parser.add_argument("--log-level", default=os.environ.get("VMCODE_DBG_LOG", "WARNING"), help="Logging level (default WARNING)")
    parser.add_argument("--key-scheme", choices=["unqualified", "file-qualified"])
    parser.add_argument("--merge-policy", choices=["overwrite", "accumulate"])
    parser.add_argument("--path-convention", choices=["tool", "line-pc"])
    parser.add_argument("--headers", action="store_true", default=None, help="Recognize .h headers under the marker directory")
    parser.add_argument("--header-marker")
    parser.add_argument(
        "-c",
        "--command",
        action="append",
        help="Execute a command non-interactively (repeatable; quote the command string)",
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        config = ProviderConfig().with_environment().with_options(
            {
                "key_scheme": args.key_scheme,
                "merge_policy": args.merge_policy,
                "path_convention": args.path_convention,
                "recognize_headers": args.headers,
                "header_marker": args.header_marker,
            }
        )
    except ValueError as exc:
        parser.error(str(exc))
    LOG.debug("inspector config: %s", config.describe())
    ctx = InspectorContext(config=config, json_output=args.json)
    registry = build_registry()
    try:
        if args.source:
            status = _run_single_command(ctx, registry, f"open {_quote(args.source)}")
            if status and args.command:
                return status
        if args.command:
            status = 0
            for command_line in args.command:
                status = _run_single_command(ctx, registry, command_line)
                if status:
                    break
            return status
        repl = InspectorREPL(ctx, registry)
        return repl.run()
    except KeyboardInterrupt:
        print()
        return 0
    finally:
        ctx.close()


def _quote(value: str) -> str:
    return "'" + value.replace("'", "'\"'\"'") + "'"


def _run_single_command(ctx: InspectorContext, registry: CommandRegistry, command_line: str) -> int:
    try:
        return registry.execute(ctx, command_line) or 0
    except SystemExit as exc:
        return int(exc.code or 0)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
