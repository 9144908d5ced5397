import sys
import traceback

from colorama import Fore, Style, just_fix_windows_console

from compiler import Compiler
from program import CcbfError
from profiler import LoopProfiler
from vm import DEFAULT_CELLS, execute


PROMPT = "ccbf> "
QUIT_WORDS = ("exit", "quit", ":q", ":quit")

USAGE = """Usage:
  ccbf [options] <file.bf>     run a program
  ccbf [options]               start the REPL
Options:
  --cells N       number of tape cells (default 30000)
  --dump          print the compiled bytecode instead of running
  --profile       print the most entered loops to stderr after the run
  --trace         print every executed instruction to stderr
  --no-optimize   one instruction per command character
  --debug         show Python tracebacks"""


class UsageError(Exception):
    pass


def report_error(message: str):
    if sys.stderr.isatty():
        just_fix_windows_console()
        message = f"{Fore.RED}{message}{Style.RESET_ALL}"
    print(message, file=sys.stderr)


def report_profile(profiler: LoopProfiler | None):
    if profiler is None:
        return
    for line in profiler.report():
        print(line, file=sys.stderr)


def run_source(source: str, cells: int, stdin=None, stdout=None, optimize: bool = True,
               profile: bool = False, trace: bool = False):
    bc = Compiler(optimize=optimize).compile(source)
    profiler = LoopProfiler() if profile else None
    try:
        execute(bc, cells=cells, stdin=stdin, stdout=stdout, trace=trace, profiler=profiler)
    finally:
        report_profile(profiler)


def read_source(path):
    # every non-command byte is a comment, so undecodable bytes are harmless
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def cmd_dump(path, debug: bool = False, optimize: bool = True):
    try:
        bc = Compiler(optimize=optimize).compile(read_source(path))
    except (OSError, CcbfError) as e:
        if debug:
            traceback.print_exc()
        else:
            report_error(f"Build error: {e}")
        sys.exit(1)

    print("INSTRUCTIONS:")
    for line in bc.listing():
        print(line)


def cmd_run(path, cells: int = DEFAULT_CELLS, debug: bool = False, optimize: bool = True,
            profile: bool = False, trace: bool = False):
    try:
        run_source(read_source(path), cells, optimize=optimize, profile=profile, trace=trace)
    except (OSError, CcbfError) as e:
        if debug:
            traceback.print_exc()
        else:
            report_error(str(e))
        sys.exit(1)


def cmd_repl(cells: int = DEFAULT_CELLS, debug: bool = False, optimize: bool = True,
             profile: bool = False, trace: bool = False, stdin=None, stdout=None):
    # Each line is compiled and run on a fresh tape; programs read from the same stdin.
    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout.buffer

    while True:
        stdout.write(PROMPT.encode())
        stdout.flush()
        raw = stdin.readline()
        if not raw:
            stdout.write(b"\n")
            stdout.flush()
            return

        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if line.strip() in QUIT_WORDS:
            return

        try:
            run_source(line, cells, stdin=stdin, stdout=stdout, optimize=optimize,
                       profile=profile, trace=trace)
        except CcbfError as e:
            if debug:
                traceback.print_exc()
            else:
                report_error(str(e))


def parse_args(argv):
    opts = {
        "cells": DEFAULT_CELLS,
        "debug": False,
        "dump": False,
        "optimize": True,
        "profile": False,
        "trace": False,
    }
    files = []

    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--cells" or arg.startswith("--cells="):
            if arg == "--cells":
                i += 1
                if i >= len(argv):
                    raise UsageError("--cells needs a value")
                value = argv[i]
            else:
                value = arg.split("=", 1)[1]
            try:
                opts["cells"] = int(value)
            except ValueError:
                raise UsageError(f"Invalid cell count: {value}")
            if opts["cells"] <= 0:
                raise UsageError(f"Invalid cell count: {value}")
        elif arg == "--debug":
            opts["debug"] = True
        elif arg == "--dump":
            opts["dump"] = True
        elif arg == "--no-optimize":
            opts["optimize"] = False
        elif arg == "--profile":
            opts["profile"] = True
        elif arg == "--trace":
            opts["trace"] = True
        elif arg in ("-h", "--help"):
            raise UsageError(None)
        elif arg.startswith("--"):
            raise UsageError(f"Unknown option: {arg}")
        else:
            files.append(arg)
        i += 1

    if len(files) > 1:
        raise UsageError("Only one source file can be specified")
    if opts["dump"] and not files:
        raise UsageError("--dump needs a source file")
    return files[0] if files else None, opts


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    try:
        path, opts = parse_args(argv)
    except UsageError as e:
        if e.args[0]:
            report_error(e.args[0])
        print(USAGE, file=sys.stderr)
        sys.exit(1 if e.args[0] else 0)

    if opts["dump"]:
        cmd_dump(path, debug=opts["debug"], optimize=opts["optimize"])
        return

    run_opts = {k: opts[k] for k in ("cells", "debug", "optimize", "profile", "trace")}
    if path is None:
        cmd_repl(**run_opts)
    else:
        cmd_run(path, **run_opts)


if __name__ == "__main__":
    main()
