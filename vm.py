import sys

from program import (
    CcbfError,
    OPCODES,
    MOVE_RIGHT, MOVE_LEFT, ADD, SUB, WRITE, READ,
    JUMP_IF_ZERO, JUMP_IF_NONZERO,
    ZERO, SCAN_RIGHT, SCAN_LEFT, MOVE_VALUE_LEFT, MOVE_VALUE_RIGHT,
)
from profiler import LoopProfiler


DEFAULT_CELLS = 30000

ACCESS_VIOLATION = "AccessViolation"
INTERNAL_INCONSISTENCY = "InternalInconsistency"


class RuntimeFault(CcbfError):
    kind = None

    def __init__(self, message: str, pc: int | None = None, dp: int | None = None):
        super().__init__(message)
        self.message = message
        self.pc = pc
        self.dp = dp

    def format(self, indent: str = "") -> str:
        lines = [f"{indent}Runtime error: {self.message}"]
        if self.pc is not None:
            lines.append(f"{indent}  pc={self.pc:04d} dp={self.dp}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


class AccessViolation(RuntimeFault):
    kind = ACCESS_VIOLATION


class InternalInconsistency(RuntimeFault):
    kind = INTERNAL_INCONSISTENCY


class VM:
    def __init__(self, bytecode_program, cells: int = DEFAULT_CELLS, stdin=None, stdout=None,
                 profiler: LoopProfiler | None = None, trace: bool = False):
        if not isinstance(cells, int) or isinstance(cells, bool) or cells <= 0:
            raise ValueError(f"tape length must be a positive integer, got {cells!r}")

        self.program = bytecode_program
        self.instructions = list(bytecode_program)
        self.cells = cells
        self.stdin = stdin if stdin is not None else sys.stdin.buffer
        self.stdout = stdout if stdout is not None else sys.stdout.buffer
        self.profiler = profiler
        self.trace_enabled = trace

        self.pc = 0                     # program counter (next instruction)
        self.dp = 0                     # data pointer into the tape
        self.tape = bytearray(cells)

    def fault(self, cls, message):
        return cls(message, pc=self.pc, dp=self.dp)

    def move(self, target: int):
        if target < 0 or target >= self.cells:
            raise self.fault(AccessViolation, f"Access violation, dp out of bounds ({target})")
        self.dp = target

    def flush(self):
        flush = getattr(self.stdout, "flush", None)
        if flush is not None:
            flush()

    def read_byte(self):
        data = self.stdin.read(1)
        if not data:
            return 0
        return data[0]

    def step(self):
        opcode, arg = self.instructions[self.pc]
        if opcode not in OPCODES:
            raise self.fault(InternalInconsistency, f"Unrecognized op {opcode!r}")

        if self.trace_enabled:
            print(f"TRACE pc={self.pc:04d} {(opcode, arg)!r} dp={self.dp} cell={self.tape[self.dp]}",
                  file=sys.stderr)

        if opcode == MOVE_RIGHT:
            self.move(self.dp + arg)
        elif opcode == MOVE_LEFT:
            self.move(self.dp - arg)
        elif opcode == ADD:
            self.tape[self.dp] = (self.tape[self.dp] + arg) & 0xFF
        elif opcode == SUB:
            self.tape[self.dp] = (self.tape[self.dp] - arg) & 0xFF
        elif opcode == WRITE:
            self.stdout.write(bytes((self.tape[self.dp],)) * arg)
        elif opcode == READ:
            self.flush()
            for _ in range(arg):
                # end of input reads as 0, so ",[.,]" stops
                self.tape[self.dp] = self.read_byte()
        elif opcode == JUMP_IF_ZERO:
            if self.tape[self.dp] == 0:
                if self.profiler is not None:
                    self.profiler.record(self.program.loop_source(self.pc, arg))
                self.pc = arg
        elif opcode == JUMP_IF_NONZERO:
            if self.tape[self.dp] != 0:
                self.pc = arg
        elif opcode == ZERO:
            self.tape[self.dp] = 0
        elif opcode == SCAN_RIGHT:
            while self.tape[self.dp] != 0:
                self.move(self.dp + arg)
        elif opcode == SCAN_LEFT:
            while self.tape[self.dp] != 0:
                self.move(self.dp - arg)
        elif opcode == MOVE_VALUE_LEFT or opcode == MOVE_VALUE_RIGHT:
            value = self.tape[self.dp]
            if value != 0:
                target = self.dp - arg if opcode == MOVE_VALUE_LEFT else self.dp + arg
                if target < 0 or target >= self.cells:
                    raise self.fault(AccessViolation, f"Access violation, dp out of bounds ({target})")
                self.tape[target] = (self.tape[target] + value) & 0xFF
                self.tape[self.dp] = 0

        self.pc += 1

    def run(self):
        try:
            while self.pc < len(self.instructions):
                self.step()
        finally:
            self.flush()


def execute(bytecode_program, cells: int = DEFAULT_CELLS, stdin=None, stdout=None,
            profile: bool = False, trace: bool = False, profiler: LoopProfiler | None = None):
    """Run a compiled program to completion.

    Returns the LoopProfiler when profiling, otherwise None. Pass an existing
    profiler to keep its counts even when the run faults. Faults propagate
    as RuntimeFault subclasses after the output written so far is flushed.
    """
    if profiler is None and profile:
        profiler = LoopProfiler()
    vm = VM(bytecode_program, cells=cells, stdin=stdin, stdout=stdout, profiler=profiler, trace=trace)
    vm.run()
    return profiler
