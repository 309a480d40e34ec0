import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from pearl import __version__
from pearl.pearl_datatypes import NULL
from pearl.pearl_runtime import ScriptRunner

logger = logging.getLogger(__name__)

PROMPT = "pearl> "
CONTINUATION_PROMPT = "...    "

LOGO = r"""
                      _
  _ __   ___  __ _ _ __| |
 | '_ \ / _ \/ _' | '__| |
 | |_) |  __/ (_| | |  | |
 | .__/ \___|\__,_|_|  |_|
 |_|
"""

USAGE = """Pearl - A better Perl

Usage:
  pearl                  Start the REPL
  pearl -f <file>        Run a file
  pearl -e '<code>'      Evaluate code
  pearl <file>           Run a file (shorthand)
"""


def is_balanced(source: str) -> bool:
    """True when no bracket opened in `source` is still waiting to be closed.

    Quoted text is skipped, so braces inside strings do not count.
    """
    depth = 0
    quote = None
    for i, ch in enumerate(source):
        if ch in "\"'" and (i == 0 or source[i - 1] != "\\"):
            if quote is None:
                quote = ch
            elif ch == quote:
                quote = None
            continue
        if quote is not None:
            continue
        if ch in "{([":
            depth += 1
        elif ch in "})]":
            depth -= 1
    return depth <= 0 and quote is None


# ===================================================================
# Non-interactive modes
# ===================================================================

def run_code(source: str, check_only: bool = False) -> int:
    """Runs (or only parses) `source`, returning the process exit status."""
    runner = ScriptRunner()

    if check_only:
        result = runner.check(source)
        if result.status == 'parse_error':
            print(result.format_error(), file=sys.stderr)
            return 1
        print("syntax ok")
        return 0

    result = runner.run(source)
    if not result.ok:
        print(result.format_error(), file=sys.stderr)
        return 1
    return 0


def run_file(filename: str, check_only: bool = False) -> int:
    try:
        source = Path(filename).read_text(encoding="utf-8")
    except OSError as e:
        print(f"error: cant read file {filename}: {e.strerror or e}", file=sys.stderr)
        return 1
    return run_code(source, check_only)


# ===================================================================
# REPL
# ===================================================================

def repl(input_fn: Callable[[], str] = None, out: TextIO = None):
    """Runs an interactive session until `exit`, `quit` or end of input.

    `input_fn` returns the next line without its newline and raises
    EOFError when input runs out; it defaults to reading stdin.
    """
    out = out or sys.stdout
    input_fn = input_fn or _read_stdin_line
    runner = ScriptRunner(out=out)

    out.write(LOGO)
    print("Pearl - A better Perl", file=out)
    print("Type 'exit' or Ctrl+D to quit", file=out)
    print(file=out)

    pending: List[str] = []
    while True:
        out.write(CONTINUATION_PROMPT if pending else PROMPT)
        out.flush()
        try:
            line = input_fn()
        except EOFError:
            print("\nbye!", file=out)
            return

        if not pending and line in ("exit", "quit"):
            print("bye!", file=out)
            return

        pending.append(line)
        source = "\n".join(pending)
        if not is_balanced(source):
            continue
        pending = []

        result = runner.run(source)
        if result.status == 'parse_error':
            for msg in result.diagnostics:
                print("  " + msg, file=out)
            continue

        if result.status == 'error':
            print(result.format_error(), file=out)
            continue
        if result.value is not None and result.value is not NULL:
            print(result.value.display(), file=out)


def _read_stdin_line() -> str:
    line = sys.stdin.readline()
    if line == "":
        raise EOFError
    return line.rstrip("\n").rstrip("\r")


# ===================================================================
# Entry point
# ===================================================================

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pearl",
        usage=argparse.SUPPRESS,
        description=USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("-f", dest="file", metavar="FILE", help="file to run")
    parser.add_argument("-e", dest="code", metavar="CODE", help="evaluate expression")
    parser.add_argument("-check", action="store_true", help="just check syntax, dont run")
    parser.add_argument("-version", action="store_true", help="print version")
    parser.add_argument("-help", action="store_true", help="show help")
    parser.add_argument("-verbose", action="store_true", help="enable debug logging")
    parser.add_argument("script", nargs="?", help=argparse.SUPPRESS)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if args.help:
        parser.print_help(sys.stderr)
        return 0

    if args.version:
        print(f"Pearl {__version__}")
        return 0

    if args.code:
        logger.debug("evaluating -e code")
        return run_code(args.code, args.check)

    filename = args.file or args.script
    if filename:
        logger.debug("running file %s", filename)
        return run_file(filename, args.check)

    logger.debug("starting repl")
    try:
        repl()
    except KeyboardInterrupt:
        print("\nbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
