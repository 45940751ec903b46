from __future__ import annotations

from typing import Iterable, Optional

import pytest

from interpreter import Interpreter


HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)


class ScriptedInput:
    def __init__(self, data: Iterable[int]) -> None:
        self._data = iter(data)
        self.reads = 0

    def __call__(self) -> Optional[int]:
        self.reads += 1
        return next(self._data, None)


def make_interpreter(source: str, stdin: bytes = b"", **kwargs) -> tuple[Interpreter, bytearray]:
    out = bytearray()
    interp = Interpreter(
        source=source,
        filename="<string>",
        input_provider=ScriptedInput(stdin),
        output_sink=out.append,
        **kwargs,
    )
    return interp, out


@pytest.fixture
def run_bf():
    def _run(source: str, stdin: bytes = b"", **kwargs) -> bytes:
        interp, out = make_interpreter(source, stdin, **kwargs)
        interp.run()
        return bytes(out)

    return _run
