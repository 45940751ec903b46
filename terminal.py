"""Console devices backing the ``,`` and ``.`` commands."""

from __future__ import annotations
import os
import sys
from typing import BinaryIO, Optional

try:
    import termios
    import tty
except ImportError:  # Windows
    termios = None  # type: ignore[assignment]
    tty = None  # type: ignore[assignment]


class ConsoleInput:
    """Blocking single-byte reader.

    On a POSIX terminal the tty is put into raw mode for the duration of each
    read so a keystroke is delivered immediately and is not echoed. Pipes and
    files are read one byte at a time from the binary stream. Returns ``None``
    once the stream is exhausted.
    """

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> BinaryIO:
        return self._stream if self._stream is not None else sys.stdin.buffer

    def _is_tty(self) -> bool:
        try:
            return termios is not None and os.isatty(self.stream.fileno())
        except (AttributeError, OSError, ValueError):
            return False

    def __call__(self) -> Optional[int]:
        if self._is_tty():
            return self._read_raw()
        data = self.stream.read(1)
        if not data:
            return None
        return data[0]

    def _read_raw(self) -> Optional[int]:
        fd = self.stream.fileno()
        old_settings = termios.tcgetattr(fd)
        try:
            tty.setraw(fd)
            data = os.read(fd, 1)
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
        if data == b"\x03":  # Ctrl-C, raw mode swallows SIGINT
            raise KeyboardInterrupt
        if not data or data == b"\x04":  # Ctrl-D
            return None
        return data[0]


class ConsoleOutput:
    """Writes each byte unchanged and flushes straight away."""

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> BinaryIO:
        return self._stream if self._stream is not None else sys.stdout.buffer

    def __call__(self, value: int) -> None:
        self.stream.write(bytes((value,)))
        self.stream.flush()
