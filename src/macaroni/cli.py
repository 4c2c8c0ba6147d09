"""Command-line host: run a file, a code string, standard input, or a REPL."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Final

from . import __version__
from .errors import MacaroniError
from .evaluator import Macaroni
from .values import format_value

PROMPT: Final = ">>> "
VERSION_TEXT: Final = f"version {__version__} (alpha)"
_DEFAULT_LOG_LEVEL: Final = os.environ.get("MACARONI_LOG_LEVEL", "WARNING")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="macaroni", description=__doc__)
    parser.add_argument("file", nargs="?", help="program file to run (default: read standard input)")
    parser.add_argument("-v", "--version", action="store_true", help="output the current Macaroni version")
    parser.add_argument("-i", "--interactive", action="store_true", help="start an interactive REPL")
    parser.add_argument("-e", "--evaluate", metavar="CODE", help="run CODE as Macaroni source")
    parser.add_argument("--seed", type=int, default=None, help="seed for the rand operator")
    parser.add_argument(
        "--log-level",
        default=_DEFAULT_LOG_LEVEL,
        help="logging level for engine diagnostics (default: %(default)s)",
    )
    return parser


def _report(err: MacaroniError) -> None:
    print(f"error: {err}", file=sys.stderr)


def repl(vm: Macaroni) -> int:
    while True:
        sys.stdout.write(PROMPT)
        sys.stdout.flush()
        line = sys.stdin.readline()
        if not line:
            break
        try:
            result = vm.run(line)
        except MacaroniError as err:
            _report(err)
            continue
        if result is not None:
            print(f" => {format_value(result)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.version:
        print(VERSION_TEXT)
        return 0

    vm = Macaroni(seed=args.seed)
    if args.interactive:
        return repl(vm)

    if args.evaluate is not None:
        source = args.evaluate
    elif args.file is not None:
        try:
            with open(args.file, encoding="utf-8") as fh:
                source = fh.read()
        except (OSError, UnicodeDecodeError):
            print(f"could not read file {args.file}")
            return 1
    else:
        source = sys.stdin.read()

    try:
        vm.run(source)
    except MacaroniError as err:
        _report(err)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
