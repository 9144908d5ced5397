from program import (
    BytecodeProgram,
    CcbfError,
    COMMANDS,
    ADD, SUB, MOVE_LEFT, MOVE_RIGHT,
    JUMP_IF_ZERO, JUMP_IF_NONZERO,
    ZERO, SCAN_LEFT, SCAN_RIGHT, MOVE_VALUE_LEFT, MOVE_VALUE_RIGHT,
)


UNMATCHED_OPEN = "UnmatchedOpen"
UNMATCHED_CLOSE = "UnmatchedClose"


class CompileError(CcbfError):
    def __init__(self, kind: str, position: int, line: int | None = None, column: int | None = None):
        super().__init__(kind)
        self.kind = kind
        self.position = position
        self.line = line
        self.column = column

    def __str__(self) -> str:
        bracket = "[" if self.kind == UNMATCHED_OPEN else "]"
        msg = f"Compile error: unmatched '{bracket}' at position {self.position}"
        if self.line is not None:
            msg += f" (line {self.line}, column {self.column})"
        return msg


class Compiler:
    """Single pass translation of source text into a BytecodeProgram.

    Runs of the six primitive commands collapse into one instruction carrying
    the run length. Each ']' first tries the loop idioms in `fuse_loop`
    before falling back to a backpatched jump pair. With optimize=False every
    command character becomes its own instruction, which gives the reference
    program the optimized one must agree with.
    """

    def __init__(self, optimize: bool = True):
        self.optimize = optimize
        self.bc = None
        self.loop_stack = []    # (instruction index, source pos, line, column) per open '['

        self.text = ""
        self.pos = 0
        self.current_char = None
        self.line = 1
        self.column = 1

    # -------- scanning --------
    def reset(self, text):
        self.bc = BytecodeProgram()
        self.loop_stack = []
        self.text = text
        self.pos = 0
        self.current_char = text[0] if text else None
        self.line = 1
        self.column = 1

    def advance(self):
        # track line/column based on current_char before moving
        if self.current_char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.pos += 1
        if self.pos >= len(self.text):
            self.current_char = None
        else:
            self.current_char = self.text[self.pos]

    def read_run(self):
        ch = self.current_char
        count = 0
        while self.current_char == ch:
            count += 1
            self.advance()
            if not self.optimize:
                break
        return count

    # -------- compilation --------
    def compile(self, source: str) -> BytecodeProgram:
        self.reset(source)

        while self.current_char is not None:
            ch = self.current_char
            if ch in COMMANDS:
                self.bc.emit(COMMANDS[ch], self.read_run())
            elif ch == "[":
                self.loop_stack.append((self.bc.emit(JUMP_IF_ZERO, 0), self.pos, self.line, self.column))
                self.advance()
            elif ch == "]":
                self.close_loop()
                self.advance()
            else:
                # comment characters take no bytecode position
                self.advance()

        if self.loop_stack:
            _start, pos, line, column = self.loop_stack[0]
            raise CompileError(UNMATCHED_OPEN, pos, line, column)

        return self.bc

    def close_loop(self):
        if not self.loop_stack:
            raise CompileError(UNMATCHED_CLOSE, self.pos, self.line, self.column)
        start = self.loop_stack.pop()[0]

        if self.optimize:
            fused = self.fuse_loop(self.bc.instructions[start + 1 :])
            if fused is not None:
                self.bc.truncate(start)
                self.bc.emit(*fused)
                return

        end = self.bc.emit(JUMP_IF_NONZERO, start)
        self.bc.patch(start, end)

    def fuse_loop(self, body):
        # returns the replacement instruction, or None for a generic loop
        if len(body) == 1:
            opcode, arg = body[0]
            if (opcode, arg) == (SUB, 1):
                return (ZERO, 0)    # [-]
            if opcode == MOVE_RIGHT:
                return (SCAN_RIGHT, arg)    # [>>]
            if opcode == MOVE_LEFT:
                return (SCAN_LEFT, arg)     # [<<]
            return None

        if len(body) == 4:
            (dec, one), (away, n), (inc, one_again), (back, m) = body
            if (dec, one, inc, one_again) != (SUB, 1, ADD, 1) or n != m:
                return None
            if (away, back) == (MOVE_LEFT, MOVE_RIGHT):
                return (MOVE_VALUE_LEFT, n)     # [-<<+>>]
            if (away, back) == (MOVE_RIGHT, MOVE_LEFT):
                return (MOVE_VALUE_RIGHT, n)    # [->>+<<]

        return None


def compile_source(source: str, optimize: bool = True) -> BytecodeProgram:
    return Compiler(optimize=optimize).compile(source)
