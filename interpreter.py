from __future__ import annotations
import json
import os
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from lexer import BFError, BFParseError, Lexer
from parser import (
    AddCell,
    Input,
    Instruction,
    JumpIfNonZero,
    JumpIfZero,
    MoveRef,
    Output,
    Parser,
    Program,
    SourceLocation,
)


EOF_ZERO = "zero"
EOF_UNCHANGED = "unchanged"
EOF_ERROR = "error"
EOF_POLICIES = (EOF_ZERO, EOF_UNCHANGED, EOF_ERROR)

# Number of state entries kept for tracebacks.
DEFAULT_HISTORY = 64
# Cells shown either side of the data pointer in verbose tracebacks.
MEMORY_WINDOW = 8


class BFRuntimeError(BFError):
    """Raised for runtime faults."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.rule = rule
        self.step_index: Optional[int] = None


class NegativeDataPointer(BFRuntimeError):
    pass


class InputExhausted(BFRuntimeError):
    pass


class Memory:
    """Sparse tape of unsigned bytes; unwritten cells read as 0."""

    def __init__(self) -> None:
        self.cells: Dict[int, int] = {}

    def read(self, address: int) -> int:
        return self.cells.get(address, 0)

    def write(self, address: int, value: int) -> None:
        if address < 0:
            raise ValueError("address must be non-negative")
        self.cells[address] = value & 0xFF

    def __len__(self) -> int:
        return len(self.cells)

    def window(self, start: int, stop: int) -> NDArray[np.uint8]:
        start = max(0, start)
        out = np.zeros(max(0, stop - start), dtype=np.uint8)
        get = self.cells.get
        for i in range(out.shape[0]):
            out[i] = get(start + i, 0)
        return out

    def snapshot(self) -> Dict[int, int]:
        return {addr: val for addr, val in sorted(self.cells.items()) if val}


@dataclass
class StateEntry:
    step_index: int
    ip: int
    instruction: Instruction
    dp: int
    cell: int


class StateLogger:
    def __init__(self, history: int = DEFAULT_HISTORY) -> None:
        self.entries: Deque[StateEntry] = deque(maxlen=history)

    def record(self, *, step_index: int, ip: int, instruction: Instruction, dp: int, cell: int) -> StateEntry:
        entry = StateEntry(step_index=step_index, ip=ip, instruction=instruction, dp=dp, cell=cell)
        self.entries.append(entry)
        return entry


def _default_input() -> Callable[[], Optional[int]]:
    from terminal import ConsoleInput

    return ConsoleInput()


def _default_output() -> Callable[[int], None]:
    from terminal import ConsoleOutput

    return ConsoleOutput()


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str,
        verbose: bool = False,
        input_provider: Optional[Callable[[], Optional[int]]] = None,
        output_sink: Optional[Callable[[int], None]] = None,
        eof: str = EOF_ZERO,
        history: int = DEFAULT_HISTORY,
    ) -> None:
        if eof not in EOF_POLICIES:
            raise ValueError(f"Unknown EOF policy {eof!r}; expected one of {', '.join(EOF_POLICIES)}")
        self.source = source
        self.filename = filename if filename == "<string>" else os.path.abspath(filename)
        self.verbose = verbose
        self.input_provider = input_provider or _default_input()
        self.output_sink = output_sink or _default_output()
        self.eof = eof
        self.logger = StateLogger(history=history)

        # Machine state of the most recent execution, kept for diagnostics.
        self.program: Optional[Program] = None
        self.memory = Memory()
        self.ip = 0
        self.dp = 0
        self.steps = 0

    def parse(self) -> Program:
        lexer = Lexer(self.source, self.filename)
        tokens = lexer.tokenize()
        parser = Parser(tokens, self.filename, self.source)
        return parser.parse()

    def run(self) -> None:
        program = self.parse()
        self.execute(program)

    def execute(self, program: Program) -> None:
        self.program = program
        self.memory = Memory()
        self.ip = self.dp = self.steps = 0
        self.logger.entries.clear()
        try:
            self._execute(program)
        except BFRuntimeError as error:
            error.step_index = self.steps
            if error.location is None and self.ip < len(program):
                error.location = program.location_of(program[self.ip].offset)
            raise
        except Exception as exc:
            # Surface Python-level failures (e.g. a broken input provider) as
            # interpreter errors so the CLI formats them consistently.
            loc = None
            if self.ip < len(program):
                loc = program.location_of(program[self.ip].offset)
            wrapped = BFRuntimeError(f"Internal interpreter error: {exc}", location=loc, rule="internal")
            wrapped.step_index = self.steps
            raise wrapped from exc

    def _execute(self, program: Program) -> None:
        code = program.instructions
        n = len(code)
        cells = self.memory.cells
        get = cells.get
        read_byte = self.input_provider
        write_byte = self.output_sink
        tracing = self.verbose
        record = self.logger.record

        ip = 0
        dp = 0
        steps = 0
        try:
            while ip < n:
                instruction = code[ip]
                kind = type(instruction)
                at = ip
                if kind is AddCell:
                    cells[dp] = (get(dp, 0) + instruction.delta) & 0xFF
                elif kind is MoveRef:
                    moved = dp + instruction.delta
                    if moved < 0:
                        raise NegativeDataPointer(
                            f"Attempted to set negative data pointer ({dp} {instruction.delta:+d})",
                            rule="MoveRef",
                        )
                    dp = moved
                elif kind is JumpIfZero:
                    if not get(dp, 0):
                        ip = instruction.target
                elif kind is JumpIfNonZero:
                    if get(dp, 0):
                        ip = instruction.target
                elif kind is Output:
                    write_byte(get(dp, 0))
                elif kind is Input:
                    value = read_byte()
                    if value is not None:
                        cells[dp] = value & 0xFF
                    elif self.eof == EOF_ZERO:
                        cells[dp] = 0
                    elif self.eof == EOF_ERROR:
                        raise InputExhausted("End of input reached", rule="Input")
                else:
                    raise BFRuntimeError(f"Unknown instruction {instruction!r}", rule="internal")
                if tracing:
                    record(step_index=steps, ip=at, instruction=instruction, dp=dp, cell=get(dp, 0))
                steps += 1
                ip += 1
        finally:
            # On failure ip addresses the faulting instruction.
            self.ip = ip if ip >= n else at
            self.dp = dp
            self.steps = steps

def _describe(instruction: Instruction) -> str:
    if isinstance(instruction, (MoveRef, AddCell)):
        return f"{instruction.__class__.__name__}({instruction.delta:+d})"
    if isinstance(instruction, (JumpIfZero, JumpIfNonZero)):
        return f"{instruction.__class__.__name__}(->{instruction.target})"
    return instruction.__class__.__name__


def _caret_line(statement: str, column: int) -> str:
    # Keep tabs so the caret lines up with the echoed source line.
    pad = "".join(ch if ch == "\t" else " " for ch in statement[: max(0, column - 1)])
    return pad + "^"


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def format_text(self, error: BFRuntimeError, verbose: bool) -> str:
        rule = error.rule or "runtime"
        summary = f"{error.__class__.__name__}: {error.message}"
        if not verbose:
            return summary
        interp = self.interpreter
        lines = ["Traceback (most recent call last):"]
        loc = error.location
        if loc:
            lines.append(f"  File \"{loc.file}\", line {loc.line}, column {loc.column}, in <program>")
            if loc.statement:
                lines.append(f"    {loc.statement}")
                lines.append(f"    {_caret_line(loc.statement, loc.column)}")
        else:
            lines.append("  <unknown location> in <program>")
        lines.append(f"    State log index: {error.step_index}  ip={interp.ip}  dp={interp.dp}")
        entries = list(interp.logger.entries)
        if entries:
            lines.append("  Recent steps:")
            for entry in entries[-8:]:
                lines.append(
                    f"    #{entry.step_index} ip={entry.ip} {_describe(entry.instruction)} dp={entry.dp} cell={entry.cell}"
                )
        start = max(0, interp.dp - MEMORY_WINDOW)
        window = interp.memory.window(start, interp.dp + MEMORY_WINDOW + 1)
        cells = " ".join(f"{int(v):02x}" for v in window)
        lines.append(f"  Memory [{start}..{start + window.shape[0]}): {cells}")
        lines.append(f"{summary} (rule: {rule})")
        return "\n".join(lines)

    def to_json(self, error: BFRuntimeError) -> str:
        interp = self.interpreter
        data: Dict[str, Any] = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "rule": error.rule,
                "failing_step_index": error.step_index,
            },
            "state": {
                "ip": interp.ip,
                "dp": interp.dp,
                "steps": interp.steps,
                "memory": {str(k): v for k, v in interp.memory.snapshot().items()},
            },
            "history": [
                {
                    "step_index": entry.step_index,
                    "ip": entry.ip,
                    "instruction": _describe(entry.instruction),
                    "dp": entry.dp,
                    "cell": entry.cell,
                }
                for entry in interp.logger.entries
            ],
        }
        if error.location:
            data["error"]["source_location"] = {
                "file": error.location.file,
                "line": error.location.line,
                "column": error.location.column,
                "statement": error.location.statement,
            }
        return json.dumps(data, indent=2)


class ParseErrorFormatter:
    CARET_COLOR = "\x1b[38;2;255;85;85m"
    RESET = "\033[0m"

    def __init__(self, color: bool = True) -> None:
        self.color = color

    def format_text(self, error: BFParseError) -> str:
        lines: List[str] = [f"{error.__class__.__name__}: {error.message}"]
        loc = error.location
        if loc is not None and loc.statement:
            caret = _caret_line(loc.statement, loc.column)
            if self.color:
                caret = caret[:-1] + self.CARET_COLOR + "^" + self.RESET
            lines.append(f"    {loc.statement}")
            lines.append(f"    {caret}")
        return "\n".join(lines)
