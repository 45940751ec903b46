from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence, Tuple, Union, overload

from lexer import Lexer, Token, UnclosedLeftBracket, UnclosedRightBracket


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str


@dataclass(frozen=True)
class MoveRef:
    delta: int
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class AddCell:
    delta: int
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class Output:
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class Input:
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class JumpIfZero:
    target: int
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class JumpIfNonZero:
    target: int
    offset: int = field(default=-1, compare=False, repr=False)


Instruction = Union[MoveRef, AddCell, Output, Input, JumpIfZero, JumpIfNonZero]


@dataclass(frozen=True)
class Program:
    """Flat, jump-resolved instruction sequence.

    Every ``JumpIfZero`` at index ``i`` targets the index ``j`` of its
    ``JumpIfNonZero`` and vice versa. Targets point at the partner
    instruction itself; the executor increments ``ip`` after every
    instruction, jumps included.
    """

    instructions: Tuple[Instruction, ...]
    filename: str = "<string>"
    source: str = field(default="", repr=False)

    def __len__(self) -> int:
        return len(self.instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    @overload
    def __getitem__(self, index: int) -> Instruction: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[Instruction, ...]: ...

    def __getitem__(self, index):
        return self.instructions[index]

    def location_of(self, offset: int) -> SourceLocation:
        """Resolve an instruction's byte offset to a line and column."""
        if offset < 0:
            return location_for_index(self.source, self.filename, -1)
        index = len(self.source.encode("utf-8")[:offset].decode("utf-8", "ignore"))
        return location_for_index(self.source, self.filename, index)


def location_for_index(source: str, filename: str, index: int) -> SourceLocation:
    if index < 0:
        return SourceLocation(file=filename, line=0, column=0, statement="")
    line_start = source.rfind("\n", 0, index) + 1
    line_end = source.find("\n", index)
    if line_end == -1:
        line_end = len(source)
    line = source.count("\n", 0, index) + 1
    return SourceLocation(
        file=filename,
        line=line,
        column=index - line_start + 1,
        statement=source[line_start:line_end].rstrip("\r"),
    )


class Parser:
    def __init__(self, tokens: Sequence[Token], filename: str, source: str = "") -> None:
        self.tokens = tokens
        self.filename = filename
        self.source = source

    def parse(self) -> Program:
        instructions: List[Instruction] = []
        append = instructions.append
        # (instruction index, token) for each loop-open still waiting for its close
        stack: List[Tuple[int, Token]] = []

        for token in self.tokens:
            kind = token.type
            if kind == "MOVE":
                append(MoveRef(token.value, token.offset))
            elif kind == "ADD":
                append(AddCell(token.value, token.offset))
            elif kind == "OUTPUT":
                append(Output(token.offset))
            elif kind == "INPUT":
                append(Input(token.offset))
            elif kind == "LOOP_OPEN":
                stack.append((len(instructions), token))
                # Placeholder, rewritten once the matching close is seen.
                append(JumpIfZero(-1, token.offset))
            elif kind == "LOOP_CLOSE":
                if not stack:
                    raise UnclosedRightBracket(token.offset, self._location(token))
                open_index, open_token = stack.pop()
                close_index = len(instructions)
                append(JumpIfNonZero(open_index, token.offset))
                instructions[open_index] = JumpIfZero(close_index, open_token.offset)
            else:
                raise ValueError(f"Unknown token type {kind!r}")

        if stack:
            _, outermost = stack[0]
            raise UnclosedLeftBracket(outermost.offset, self._location(outermost))

        return Program(instructions=tuple(instructions), filename=self.filename, source=self.source)

    def _location(self, token: Token) -> SourceLocation:
        return location_for_index(self.source, self.filename, token.index)


def parse(source: str, filename: str = "<string>") -> Program:
    tokens = Lexer(source, filename).tokenize()
    return Parser(tokens, filename, source).parse()
