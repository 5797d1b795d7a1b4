from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger("rootfs_runner.output")


def _log_line(label: str, line: str) -> None:
    logger.info("%s | %s", label, line)


class LineBufferedSink:
    """Split raw child output into labelled log lines.

    Bytes are buffered until a newline arrives; each complete line is emitted
    as ``"<label> | <line>"``. A trailing partial line is held back until the
    next write, and only emitted by flush() once the child has exited.
    """

    def __init__(self, label: str, emit: Optional[Callable[[str, str], None]] = None) -> None:
        self.label = label
        self._emit = emit or _log_line
        self._buffer = bytearray()
        self._flushed = False

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        self._drain()
        return len(data)

    def flush(self) -> None:
        if self._flushed:
            return
        self._flushed = True
        self._drain()
        if self._buffer:
            tail = bytes(self._buffer)
            self._buffer.clear()
            self._emit(self.label, tail.decode("utf-8", errors="replace"))

    @property
    def pending(self) -> bytes:
        return bytes(self._buffer)

    def _drain(self) -> None:
        while True:
            idx = self._buffer.find(b"\n")
            if idx < 0:
                return
            line = bytes(self._buffer[:idx])
            del self._buffer[: idx + 1]
            self._emit(self.label, line.decode("utf-8", errors="replace"))
