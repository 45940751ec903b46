"""bf-lang entry point."""

from __future__ import annotations
import argparse
import sys
import time
from typing import List, Optional

from interpreter import EOF_POLICIES, EOF_ZERO, BFRuntimeError, Interpreter, ParseErrorFormatter, TracebackFormatter
from lexer import BFParseError


def _banner(enabled: bool, text: str) -> None:
    if enabled:
        print(text, file=sys.stderr)


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="bf-lang tape machine interpreter")
    parser.add_argument("program", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Record execution history and show it in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--timings", action="store_true", help="Report load and execution times on stderr")
    parser.add_argument("--eof", choices=EOF_POLICIES, default=EOF_ZERO, help="What ',' does once input is exhausted")
    parser.add_argument("--no-color", dest="color", action="store_false", help="Disable ANSI colors in diagnostics")
    args = parser.parse_args(argv)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    interpreter = Interpreter(
        source=source_text,
        filename=filename,
        verbose=args.verbose,
        eof=args.eof,
    )

    _banner(args.timings, "Loading bf code...")
    started = time.perf_counter()
    try:
        program = interpreter.parse()
    except BFParseError as error:
        print(ParseErrorFormatter(color=args.color).format_text(error), file=sys.stderr)
        return 1
    _banner(args.timings, f"Program has been loaded. [{time.perf_counter() - started:.3f}s]")

    started = time.perf_counter()
    try:
        interpreter.execute(program)
    except BFRuntimeError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    _banner(
        args.timings,
        f"Program has been executed successfully. [{time.perf_counter() - started:.3f}s, {interpreter.steps} steps]",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(run_cli())
