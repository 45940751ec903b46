from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from parser import SourceLocation


class BFError(Exception):
    """Base class for interpreter errors."""


class BFParseError(BFError):
    """Raised when parsing fails."""

    what = "Parse error"

    def __init__(self, offset: int, location: Optional["SourceLocation"] = None) -> None:
        self.offset = offset
        self.location = location
        if location is not None:
            message = f"{self.what} at {location.file}:{location.line}:{location.column}"
        else:
            message = f"{self.what} at offset {offset}"
        super().__init__(message)
        self.message = message


class UnclosedLeftBracket(BFParseError):
    what = "Unclosed '['"


class UnclosedRightBracket(BFParseError):
    what = "Unmatched ']'"


@dataclass
class Token:
    type: str
    value: int
    offset: int  # UTF-8 byte offset into the source
    index: int
    line: int
    column: int


COMMANDS = "><+-.,[]"

# Pairs whose runs collapse into one signed delta.
RUNS = {
    ">": ("MOVE", 1),
    "<": ("MOVE", -1),
    "+": ("ADD", 1),
    "-": ("ADD", -1),
}

SYMBOLS = {
    ".": "OUTPUT",
    ",": "INPUT",
    "[": "LOOP_OPEN",
    "]": "LOOP_CLOSE",
}


class Lexer:
    def __init__(self, text: str, filename: str) -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.byte_offset = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        runs = RUNS
        symbols = SYMBOLS
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch in runs:
                tokens_append(self._consume_run(runs[ch][0]))
                continue
            if ch in symbols:
                tokens_append(Token(symbols[ch], 0, self.byte_offset, self.index, self.line, self.column))
                _advance()
                continue
            # Anything else is commentary.
            _advance()
        return tokens

    def _consume_run(self, kind: str) -> Token:
        offset, index, line, col = self.byte_offset, self.index, self.line, self.column
        text = self.text
        n = len(text)
        runs = RUNS
        delta = 0
        # Runs are ASCII and never span newlines.
        while self.index < n:
            entry = runs.get(text[self.index])
            if entry is None or entry[0] != kind:
                break
            delta += entry[1]
            self.index += 1
            self.byte_offset += 1
            self.column += 1
        return Token(kind, delta, offset, index, line, col)

    def _advance(self) -> None:
        ch = self.text[self.index]
        self.byte_offset += len(ch.encode("utf-8"))
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1
