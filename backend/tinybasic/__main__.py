"""Command-line entry point.

Usage:
  python -m backend.tinybasic run program.bas [--var a=5] [--max-steps N] [--trace]
  python -m backend.tinybasic serve [--host 127.0.0.1] [--port 8000]

`run` executes a program step by step with output on stdout and a memory map
behind PEEK/POKE; it exits with status 1 when the program hits an error or a
budget. `serve` starts the HTTP API with uvicorn.
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .errors import BasicError
from .hooks import MemoryMap, StreamOutput
from .interpreter import Interpreter


def _parse_var(text: str) -> tuple[str, int]:
    name, sep, value = text.partition("=")
    name = name.strip()
    if not sep or len(name) != 1 or not "a" <= name <= "z":
        raise argparse.ArgumentTypeError(f"expected letter=value, got {text!r}")
    try:
        return name, int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"value for {name} must be an integer")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tinybasic", description="TinyBASIC interpreter")
    sub = p.add_subparsers(dest="command", required=True)

    r = sub.add_parser("run", help="Run a BASIC program file")
    r.add_argument("file", type=Path, help="Program text file ('-' for stdin)")
    r.add_argument("--var", action="append", type=_parse_var, default=[], help="Seed a variable, e.g. --var a=5")
    r.add_argument("--max-steps", type=int, default=None, help="Stop after this many line-statements")
    r.add_argument("--lenient-stacks", action="store_true", help="Silently drop gosub/for beyond stack depth")
    r.add_argument("--dump-vars", action="store_true", help="Print non-zero variables to stderr at the end")
    r.add_argument("--trace", action="store_true", help="Log jumps and stack activity to stderr")

    s = sub.add_parser("serve", help="Start the HTTP API")
    s.add_argument("--host", default="127.0.0.1")
    s.add_argument("--port", type=int, default=8000)
    return p


def run_file(args: argparse.Namespace) -> int:
    code = sys.stdin.read() if str(args.file) == "-" else args.file.read_text()
    it = Interpreter(StreamOutput(), MemoryMap(), strict_capacity=not args.lenient_stacks)
    it.init(code, clear_variables=True)
    for name, value in args.var:
        it.set_variable(name, value)

    steps = 0
    t0 = time.perf_counter()
    try:
        while not it.finished:
            if args.max_steps is not None and steps >= args.max_steps:
                print(f"tinybasic: step limit {args.max_steps} reached at line {it.current_line}", file=sys.stderr)
                return 1
            it.step()
            steps += 1
    except BasicError as e:
        where = f" at line {e.line}" if e.line is not None else ""
        print(f"tinybasic: {e.code}{where}: {e.message}", file=sys.stderr)
        if e.hint:
            print(f"  hint: {e.hint}", file=sys.stderr)
        return 1
    finally:
        if args.dump_vars:
            for name, value in it.variables.as_dict(nonzero_only=True).items():
                print(f"{name} = {value}", file=sys.stderr)
    logging.getLogger(__name__).debug("%d steps in %.3fs", steps, time.perf_counter() - t0)
    return 0


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    from backend.app.main import app

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if getattr(args, "trace", False):
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format="%(name)s: %(message)s")
    if args.command == "serve":
        return serve(args)
    return run_file(args)


if __name__ == "__main__":
    sys.exit(main())
