"""ApeCrunch CLI - exact-fraction calculator with persistent history.

Usage:
    python -m apecrunch eval EXPRESSION [EXPRESSION ...] [--fraction]
    python -m apecrunch repl
    python -m apecrunch history [--session ID] [--all]
    python -m apecrunch vars
    python -m apecrunch paths

Exit codes:
    0: Success
    1: Storage failure / Internal error
    2: Expression rejected / invalid configuration
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TextIO

from apecrunch import __version__
from apecrunch.calc.errors import CalcError
from apecrunch.config import CalcSettings, SettingsError, load_settings, resolve_log_level
from apecrunch.engine import CalcEngine, CalcResult
from apecrunch.storage.errors import HistoryStorageError

logger = logging.getLogger(__name__)

REPL_PROMPT = "> "


def _format_result(result: CalcResult, with_fraction: bool = False) -> str:
    if with_fraction and not result.value.is_integer():
        return f"{result.display} [{result.fraction}]"
    return result.display


def _format_error(error: CalcError) -> str:
    return f"error[{error.kind}]: {error}"


def _print_load_error(engine: CalcEngine) -> None:
    if engine.load_error is not None:
        print(
            f"warning: history reset ({engine.load_error.kind}): {engine.load_error}",
            file=sys.stderr,
        )


def cmd_eval(args: argparse.Namespace, engine: CalcEngine) -> int:
    """Evaluate each expression argument in order.

    Exit codes:
        0: All expressions evaluated
        2: An expression was rejected (later ones are not evaluated)
    """
    for text in args.expressions:
        try:
            result = engine.evaluate(text)
        except CalcError as e:
            print(_format_error(e), file=sys.stderr)
            return 2
        if result is not None:
            print(_format_result(result, args.fraction))
    return 0


def cmd_history(args: argparse.Namespace, engine: CalcEngine) -> int:
    """Print history entries as ``expression = value`` lines.

    Defaults to the latest session that has entries; ``--all`` lists every
    session in chronological order.
    """
    decimal_places = engine.settings.decimal_places
    if args.all:
        entries = engine.history_entries()
    elif args.session:
        try:
            entries = engine.history_entries(args.session)
        except KeyError:
            print(f"error: unknown session {args.session}", file=sys.stderr)
            return 2
    else:
        populated = [session for session in engine.sessions() if session.entries]
        entries = list(populated[-1].entries) if populated else []

    for entry in entries:
        print(f"{entry.entry_id}  {entry.rendition(decimal_places)}")
    return 0


def cmd_vars(args: argparse.Namespace, engine: CalcEngine) -> int:
    """Print the variable table."""
    for name, value in engine.variables().items():
        print(f"{name} = {engine.format(value)}")
    return 0


def cmd_paths(args: argparse.Namespace, settings: CalcSettings) -> int:
    """Print the data directory and history file locations."""
    print(f"data_dir: {settings.data_dir}")
    print(f"history_file: {settings.history_path}")
    return 0


def run_repl(engine: CalcEngine, stdin: TextIO, stdout: TextIO, prompt: str = "") -> int:
    """Line-oriented read-eval-print loop.

    Each input line is evaluated to completion before the next is read.
    Lines starting with ``:`` are commands: ``:vars``, ``:history``,
    ``:reinsert ID`` and ``:quit``.
    """
    for line in stdin:
        text = line.rstrip("\n")
        command = text.strip()

        if command in (":quit", ":q"):
            break
        if command == ":vars":
            for name, value in engine.variables().items():
                print(f"{name} = {engine.format(value)}", file=stdout)
        elif command == ":history":
            current = engine.store.current_session()
            entries = list(current.entries) if current is not None else []
            for entry in entries:
                print(
                    f"{entry.entry_id}  {entry.rendition(engine.settings.decimal_places)}",
                    file=stdout,
                )
        elif command.startswith(":reinsert"):
            entry_id = command[len(":reinsert") :].strip()
            try:
                print(engine.reinsert(entry_id), file=stdout)
            except KeyError:
                print(f"error: unknown entry {entry_id}", file=stdout)
        elif command.startswith(":"):
            print(f"error: unknown command {command}", file=stdout)
        else:
            try:
                result = engine.evaluate(text)
            except CalcError as e:
                print(_format_error(e), file=stdout)
            else:
                if result is not None:
                    print(_format_result(result), file=stdout)

        if prompt:
            print(prompt, end="", file=stdout, flush=True)

    return 0


def cmd_repl(args: argparse.Namespace, engine: CalcEngine) -> int:
    prompt = REPL_PROMPT if sys.stdin.isatty() else ""
    if prompt:
        print(prompt, end="", flush=True)
    return run_repl(engine, sys.stdin, sys.stdout, prompt=prompt)


ENGINE_COMMANDS = {
    "eval": cmd_eval,
    "history": cmd_history,
    "vars": cmd_vars,
    "repl": cmd_repl,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="apecrunch",
        description="ApeCrunch - exact-fraction calculator with persistent history",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    eval_parser = subparsers.add_parser(
        "eval",
        help="Evaluate expressions and record them in history",
    )
    eval_parser.add_argument(
        "expressions",
        nargs="+",
        metavar="EXPRESSION",
        help="Expression or assignment, e.g. '1/3 + 1/6' or 'x = 2^10'",
    )
    eval_parser.add_argument(
        "--fraction",
        action="store_true",
        default=False,
        help="Also print the exact p/q value of non-integer results",
    )

    subparsers.add_parser(
        "repl",
        help="Read expressions line by line from stdin",
    )

    history_parser = subparsers.add_parser(
        "history",
        help="List history entries (latest session by default)",
    )
    history_parser.add_argument(
        "--session",
        metavar="ID",
        default=None,
        help="Session ID to list",
    )
    history_parser.add_argument(
        "--all",
        action="store_true",
        default=False,
        help="List entries of every session",
    )

    subparsers.add_parser(
        "vars",
        help="List variables",
    )

    subparsers.add_parser(
        "paths",
        help="Print the data directory and history file locations",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Storage failure / Internal error (unexpected)
        2: Expression rejected / invalid configuration
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        try:
            logging.basicConfig(level=resolve_log_level())
            settings = load_settings()
        except SettingsError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2

        if args.command == "paths":
            return cmd_paths(args, settings)

        engine = CalcEngine.open(settings)
        _print_load_error(engine)
        try:
            code = ENGINE_COMMANDS[args.command](args, engine)
        finally:
            engine.close()
        return code

    except HistoryStorageError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        # Unexpected errors return exit code 1
        logger.exception("Unexpected error")
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
