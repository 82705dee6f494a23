"""Unbuffered hand-off between the producer thread and the consumer.

A receive registers demand and waits; the producer waits for demand before
computing the next item, so nothing is produced ahead of the consumer and
at most one item is ever in flight. The producer side also observes
cancellation at every point where it would otherwise block.
"""

import threading
from typing import Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

_EMPTY = object()


class ChannelCancelled(Exception):
    """The consumer cancelled the channel while the producer was sending."""


class RendezvousChannel(Generic[T]):
    """Single-producer, single-consumer rendezvous channel.

    Producer side: `wait_for_receiver`, `send`, `close`.
    Consumer side: `receive`, `cancel`.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._demand = False
        self._item = _EMPTY
        self._closed = False
        self._cancelled = False
        self._failure: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def cancelled(self) -> bool:
        with self._cond:
            return self._cancelled

    def wait_for_receiver(self) -> bool:
        """Block until a receiver is waiting. Returns False once cancelled."""
        with self._cond:
            self._cond.wait_for(lambda: self._demand or self._cancelled)
            return not self._cancelled

    def send(self, item: T) -> None:
        """Block until a receiver is waiting, then hand ``item`` to it.

        Raises:
            ChannelCancelled: If the channel is cancelled before a receiver arrives.
            RuntimeError: If the channel was already closed.
        """
        with self._cond:
            if self._closed:
                raise RuntimeError("send on closed channel")
            self._cond.wait_for(lambda: self._demand or self._cancelled)
            if self._cancelled:
                raise ChannelCancelled()
            self._item = item
            self._demand = False
            self._cond.notify_all()

    def close(self, failure: Optional[BaseException] = None) -> None:
        """Mark the end of the stream.

        A ``failure`` is raised to the next receiver instead of the plain
        end-of-stream result.
        """
        with self._cond:
            self._closed = True
            self._failure = failure
            self._cond.notify_all()

    def receive(self) -> Tuple[Optional[T], bool]:
        """Block for the next item.

        Returns:
            tuple: ``(item, True)``, or ``(None, False)`` once the channel is
            closed and drained.

        Raises:
            BaseException: The failure the producer closed the channel with,
                once; later calls report a plain end of stream.
        """
        with self._cond:
            if not self._closed:
                self._demand = True
                self._cond.notify_all()
                self._cond.wait_for(lambda: self._item is not _EMPTY or self._closed)
                self._demand = False

            if self._item is not _EMPTY:
                item, self._item = self._item, _EMPTY
                return item, True

            failure, self._failure = self._failure, None
            if failure is not None:
                raise failure
            return None, False

    def cancel(self) -> None:
        """Stop the producer at its next send point."""
        with self._cond:
            self._cancelled = True
            self._demand = False
            self._cond.notify_all()
