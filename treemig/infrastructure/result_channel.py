import queue
from typing import Iterator
from treemig.domain.events import Signal


class ResultChannel:
    """Unbounded many-producer / single-consumer conduit for job signals.

    Worker threads call `send`; only the orchestrator's control thread calls
    `drain`. Neither call blocks.
    """

    def __init__(self):
        self._queue: "queue.SimpleQueue[Signal]" = queue.SimpleQueue()

    def send(self, signal: Signal) -> None:
        self._queue.put(signal)

    def drain(self) -> Iterator[Signal]:
        """Yields every signal queued so far; returns as soon as the queue is empty."""
        while True:
            try:
                signal = self._queue.get_nowait()
            except queue.Empty:
                return
            yield signal

    def empty(self) -> bool:
        return self._queue.empty()

    def qsize(self) -> int:
        return self._queue.qsize()
