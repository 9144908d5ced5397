class CcbfError(Exception):
    pass


MOVE_RIGHT = "MOVE_RIGHT"
MOVE_LEFT = "MOVE_LEFT"
ADD = "ADD"
SUB = "SUB"
WRITE = "WRITE"
READ = "READ"
JUMP_IF_ZERO = "JUMP_IF_ZERO"
JUMP_IF_NONZERO = "JUMP_IF_NONZERO"

# derived by the peephole optimizer, never emitted for a single character
ZERO = "ZERO"
SCAN_RIGHT = "SCAN_RIGHT"
SCAN_LEFT = "SCAN_LEFT"
MOVE_VALUE_LEFT = "MOVE_VALUE_LEFT"
MOVE_VALUE_RIGHT = "MOVE_VALUE_RIGHT"

OPCODES = frozenset({
    MOVE_RIGHT, MOVE_LEFT, ADD, SUB, WRITE, READ, JUMP_IF_ZERO, JUMP_IF_NONZERO,
    ZERO, SCAN_RIGHT, SCAN_LEFT, MOVE_VALUE_LEFT, MOVE_VALUE_RIGHT,
})

# source character -> opcode for the run-length encoded commands
COMMANDS = {
    ">": MOVE_RIGHT,
    "<": MOVE_LEFT,
    "+": ADD,
    "-": SUB,
    ".": WRITE,
    ",": READ,
}

SYMBOLS = {op: ch for ch, op in COMMANDS.items()}
SYMBOLS[JUMP_IF_ZERO] = "["
SYMBOLS[JUMP_IF_NONZERO] = "]"


def render(opcode, arg):
    """Source-like text for a single instruction (used in loop profiles)."""
    if opcode in (JUMP_IF_ZERO, JUMP_IF_NONZERO):
        return SYMBOLS[opcode]
    if opcode in COMMANDS.values():
        return f"{SYMBOLS[opcode]}{{{arg}}}"
    if opcode == ZERO:
        return "[-]"
    if opcode == SCAN_RIGHT:
        return f"[>{{{arg}}}]"
    if opcode == SCAN_LEFT:
        return f"[<{{{arg}}}]"
    if opcode == MOVE_VALUE_LEFT:
        return f"[-<{{{arg}}}+>{{{arg}}}]"
    if opcode == MOVE_VALUE_RIGHT:
        return f"[->{{{arg}}}+<{{{arg}}}]"
    return f"?{opcode}"


class BytecodeProgram:
    def __init__(self, instructions=None):
        self.instructions = list(instructions or [])   # list of (OPCODE, arg)

    def emit(self, opcode, arg=0):
        # returns instruction index (useful for jumps)
        self.instructions.append((opcode, arg))
        return len(self.instructions) - 1

    def patch(self, index, arg):
        opcode, _ = self.instructions[index]
        self.instructions[index] = (opcode, arg)

    def truncate(self, length):
        del self.instructions[length:]

    def __len__(self):
        return len(self.instructions)

    def __getitem__(self, index):
        return self.instructions[index]

    def __iter__(self):
        return iter(self.instructions)

    def __eq__(self, other):
        if isinstance(other, BytecodeProgram):
            return self.instructions == other.instructions
        if isinstance(other, (list, tuple)):
            return self.instructions == [tuple(ins) for ins in other]
        return NotImplemented

    def __repr__(self):
        return f"BytecodeProgram({self.instructions!r})"

    def loop_source(self, start: int, end: int) -> str:
        # inclusive span, both ends are the loop's jump instructions
        return "".join(render(op, arg) for op, arg in self.instructions[start : end + 1])

    def listing(self):
        lines = []
        for i, (opcode, arg) in enumerate(self.instructions):
            lines.append(f"  {i:04d}  {opcode:<16} {arg}")
        return lines
