"""Bounded single-consumer channel used to hand results from workers to the merger."""

from __future__ import annotations

import queue
from collections.abc import Iterator
from threading import Event
from typing import Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised when sending into a channel that was closed or cancelled."""


class OutputChannel(Generic[T]):
    """A bounded FIFO with explicit completion.

    Producers block on :meth:`send` while the channel is full (backpressure).
    The consumer iterates until :meth:`close` has been called and everything
    sent before it has been drained. :meth:`cancel` closes the channel early:
    pending items are discarded and blocked producers are released with
    :class:`ChannelClosed`.
    """

    def __init__(self, maxsize: int = 8) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)
        self._closed = Event()
        self._cancelled = Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def send(self, item: T, timeout: float = 0.1) -> None:
        while True:
            if self._closed.is_set():
                raise ChannelClosed("Channel is closed")
            try:
                self._queue.put(item, timeout=timeout)
                return
            except queue.Full:
                continue

    def close(self) -> None:
        """Signal end-of-sequence once everything sent so far is consumed."""
        if self._closed.is_set():
            return
        self._closed.set()
        # The sentinel may block on a full queue; the consumer keeps draining.
        while True:
            try:
                self._queue.put(_CLOSED, timeout=0.1)
                return
            except queue.Full:
                if self._cancelled.is_set():
                    return

    def cancel(self) -> None:
        self._cancelled.set()
        self._closed.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def __iter__(self) -> Iterator[T]:
        while not self._cancelled.is_set():
            try:
                item = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]
