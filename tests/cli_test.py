import os
import subprocess
import sys

import pytest

from cli import UsageError, parse_args


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
HELLO = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)


def run_cli(*args, inp: bytes = b""):
    cli = os.path.join(ROOT, "cli.py")
    return subprocess.run(
        [sys.executable, cli, *args],
        input=inp,
        capture_output=True,
        cwd=ROOT,
        timeout=10,
    )


def write_source(tmp_path, source, name="prog.bf"):
    path = tmp_path / name
    path.write_text(source, encoding="utf-8")
    return str(path)


def test_run_file(tmp_path):
    proc = run_cli(write_source(tmp_path, "hello world:\n" + HELLO))
    if proc.returncode != 0:
        raise AssertionError(f"exited with code {proc.returncode}\nSTDERR:\n{proc.stderr!r}")
    assert proc.stdout == b"Hello World!\n"


def test_run_file_reads_stdin(tmp_path):
    proc = run_cli(write_source(tmp_path, ",[.,]"), inp=b"echo")
    assert proc.returncode == 0
    assert proc.stdout == b"echo"


def test_compile_error_exits(tmp_path):
    proc = run_cli(write_source(tmp_path, "+]"))
    assert proc.returncode == 1
    assert b"unmatched ']' at position 1" in proc.stderr


def test_runtime_fault_exits(tmp_path):
    proc = run_cli(write_source(tmp_path, "+.<."))
    assert proc.returncode == 1
    assert proc.stdout == b"\x01"
    assert b"Access violation" in proc.stderr


def test_cells_option(tmp_path):
    path = write_source(tmp_path, ">>.")
    assert run_cli("--cells", "2", path).returncode == 1
    proc = run_cli("--cells=3", path)
    assert proc.returncode == 0
    assert proc.stdout == b"\x00"


def test_missing_file(tmp_path):
    proc = run_cli(str(tmp_path / "nope.bf"))
    assert proc.returncode == 1
    assert proc.stderr


def test_dump(tmp_path):
    proc = run_cli("--dump", write_source(tmp_path, "++[-]>"))
    assert proc.returncode == 0
    lines = proc.stdout.decode().splitlines()
    assert lines[0] == "INSTRUCTIONS:"
    assert lines[1].split() == ["0000", "ADD", "2"]
    assert lines[2].split() == ["0001", "ZERO", "0"]
    assert lines[3].split() == ["0002", "MOVE_RIGHT", "1"]


def test_profile_goes_to_stderr(tmp_path):
    proc = run_cli("--profile", write_source(tmp_path, "[+]>[+]+."))
    assert proc.returncode == 0
    assert proc.stdout == b"\x01"
    assert b"[+{1}], 2" in proc.stderr


def test_parse_args_defaults():
    path, opts = parse_args(["prog.bf"])
    assert path == "prog.bf"
    assert opts["cells"] == 30000
    assert opts["optimize"] is True


def test_parse_args_options():
    path, opts = parse_args(["--cells", "10", "--no-optimize", "--trace"])
    assert path is None
    assert (opts["cells"], opts["optimize"], opts["trace"]) == (10, False, True)


@pytest.mark.parametrize("argv, message", [
    (["a.bf", "b.bf"], "Only one source file can be specified"),
    (["--cells"], "--cells needs a value"),
    (["--cells=0"], "Invalid cell count: 0"),
    (["--cells", "many"], "Invalid cell count: many"),
    (["--dump"], "--dump needs a source file"),
    (["--bogus"], "Unknown option: --bogus"),
])
def test_parse_args_errors(argv, message):
    with pytest.raises(UsageError) as exc:
        parse_args(argv)
    assert exc.value.args[0] == message


def test_two_files_exit():
    proc = run_cli("a.bf", "b.bf")
    assert proc.returncode == 1
    assert b"Only one source file can be specified" in proc.stderr


def test_non_utf8_comment_bytes(tmp_path):
    path = tmp_path / "latin1.bf"
    path.write_bytes(b"caf\xe9 +++.")
    proc = run_cli(str(path))
    if proc.returncode != 0:
        raise AssertionError(f"exited with code {proc.returncode}\nSTDERR:\n{proc.stderr!r}")
    assert proc.stdout == b"\x03"
    assert b"Traceback" not in proc.stderr


def test_dump_non_utf8(tmp_path):
    path = tmp_path / "latin1.bf"
    path.write_bytes(b"\xff\xfe[-]")
    proc = run_cli("--dump", str(path))
    assert proc.returncode == 0
    assert proc.stdout.decode().splitlines()[1].split() == ["0000", "ZERO", "0"]


def test_dump_without_optimization(tmp_path):
    proc = run_cli("--dump", "--no-optimize", write_source(tmp_path, "++[-]"))
    assert proc.returncode == 0
    rows = [line.split() for line in proc.stdout.decode().splitlines()[1:]]
    assert rows == [
        ["0000", "ADD", "1"],
        ["0001", "ADD", "1"],
        ["0002", "JUMP_IF_ZERO", "4"],
        ["0003", "SUB", "1"],
        ["0004", "JUMP_IF_NONZERO", "2"],
    ]


def test_run_without_optimization(tmp_path):
    proc = run_cli("--no-optimize", write_source(tmp_path, HELLO))
    assert proc.returncode == 0
    assert proc.stdout == b"Hello World!\n"


def test_trace_run(tmp_path):
    proc = run_cli("--trace", write_source(tmp_path, "++."))
    assert proc.returncode == 0
    assert proc.stdout == b"\x02"
    lines = proc.stderr.decode().splitlines()
    assert lines == [
        "TRACE pc=0000 ('ADD', 2) dp=0 cell=0",
        "TRACE pc=0001 ('WRITE', 1) dp=0 cell=2",
    ]


def test_dump_debug_shows_traceback(tmp_path):
    path = write_source(tmp_path, "[+")
    plain = run_cli("--dump", path)
    assert plain.returncode == 1
    assert b"Build error: Compile error: unmatched '['" in plain.stderr
    assert b"Traceback" not in plain.stderr

    debug = run_cli("--dump", "--debug", path)
    assert debug.returncode == 1
    assert b"Traceback" in debug.stderr
    assert b"CompileError" in debug.stderr


def test_profile_reported_after_fault(tmp_path):
    proc = run_cli("--profile", write_source(tmp_path, "[+]<"))
    assert proc.returncode == 1
    assert b"[+{1}], 1" in proc.stderr
    assert b"Access violation" in proc.stderr
