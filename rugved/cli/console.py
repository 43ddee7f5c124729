"""Non-blocking line input for the interactive chat."""

import sys
import queue
import asyncio
import threading
from typing import IO, Optional
import structlog


logger = structlog.get_logger()


class LineReader:
    """
    Reads stdin one line at a time on a daemon thread.

    The event loop stays free while the user types, so narration keeps
    playing. A line is only read when readline() or wait_for_line() asks for
    one, which leaves stdin alone for other prompts in between.
    """

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream or sys.stdin
        self._requests: queue.Queue = queue.Queue()
        self._pending: Optional[asyncio.Future] = None
        self._thread = threading.Thread(target=self._run, name="stdin-reader", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while True:
            future = self._requests.get()
            if future is None:
                return

            try:
                line = self.stream.readline()
            except (OSError, ValueError) as e:
                logger.warning("Failed to read input", error=str(e))
                line = ""

            try:
                future.get_loop().call_soon_threadsafe(self._deliver, future, line)
            except RuntimeError:
                # Loop already closed; nobody is waiting for this line
                return

    @staticmethod
    def _deliver(future: asyncio.Future, line: str) -> None:
        if not future.done():
            future.set_result(line)

    def _request(self) -> asyncio.Future:
        if self._pending is None:
            self._pending = asyncio.get_running_loop().create_future()
            self._requests.put(self._pending)
        return self._pending

    async def wait_for_line(self) -> None:
        """Wait until a line is available without consuming it."""
        await asyncio.shield(self._request())

    async def readline(self) -> Optional[str]:
        """Return the next line without its newline, or None at end of input."""
        line = await asyncio.shield(self._request())
        self._pending = None
        return line.rstrip("\r\n") if line else None

    def close(self) -> None:
        self._requests.put(None)
