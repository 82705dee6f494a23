"""Extraction sessions: a producer thread walking archives, pulled one leaf at a time.

Usage example:
    with open("bundle.tar.gz", "rb") as f, ExtractionSession(f, "bundle.tar.gz") as session:
        while True:
            stream, name, more = session.pull_next()
            if not more:
                break
            print(name, stream.read(64))
"""

import logging
import threading
from typing import BinaryIO, Iterator, Optional, Tuple

from .ArchiveEngine import SNIFF_SIZE
from .Channel import ChannelCancelled, RendezvousChannel
from .Errors import ExtractionError
from .Extractor import Extractor
from .FileIO import PeekableStream
from .Filestream import DEFAULT_SEPARATOR, Filestream

logger = logging.getLogger(__name__)

JOIN_TIMEOUT = 5.0


class ExtractionSession:
    """Recursively extracts one input, handing out leaves on demand.

    The walk runs on a dedicated thread that is started by the first pull
    and only advances when the consumer asks for the next leaf. A stream
    returned by a pull is valid until the next pull or `close()`.

    A session is meant to be drained by one consumer. Abandoning it before
    exhaustion is fine as long as `close()` is called (or the session is
    used as a context manager); that cancels the walk and releases every
    decoder it holds.

    Attributes:
        input (BinaryIO): The stream being extracted. Owned by the caller.
        name (str): Name of the input, the first segment of every leaf name.
        separator (str): Joins name segments.
    """

    def __init__(self, input: BinaryIO, name: str, separator: str = DEFAULT_SEPARATOR,
                 password: Optional[str] = None, sniff_size: int = SNIFF_SIZE,
                 extractor: Optional[Extractor] = None):
        self.input = input
        self.name = name
        self.separator = separator
        self.extractor = extractor or Extractor(separator=separator, password=password,
                                                sniff_size=sniff_size)
        self._channel: RendezvousChannel[Filestream] = RendezvousChannel()
        self._start_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def _start(self) -> None:
        with self._start_lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._produce, name=f"extract:{self.name}",
                                            daemon=True)
            self._thread.start()

    def _produce(self) -> None:
        walk = self.extractor.walk(Filestream(self.input, self.name))
        failure = None
        try:
            while self._channel.wait_for_receiver():
                try:
                    fs = next(walk)
                except StopIteration:
                    break
                self._channel.send(fs)
        except ChannelCancelled:
            pass
        except Exception as e:
            logger.exception("Extraction of %s failed", self.name)
            failure = e
        finally:
            walk.close()
            self._channel.close(failure)
        logger.debug("Extraction of %s finished", self.name)

    def pull_next_or_error(self) -> Tuple[Optional[PeekableStream], str, Optional[ExtractionError], bool]:
        """Return the next filestream, whether it is a leaf or an error.

        Returns:
            tuple: ``(stream, name, error, more)``. When ``more`` is False the
            walk is exhausted and the other values are ``None``/empty. With an
            error the stream is still set; for `NestedArchiveError` it holds
            the unextracted archive bytes.
        """
        self._start()
        fs, more = self._channel.receive()
        if not more:
            return None, "", None, False
        return fs.handle, fs.name, fs.error, True

    def pull_next(self) -> Tuple[Optional[PeekableStream], str, bool]:
        """Return the next leaf, skipping every filestream that carries an error.

        Returns:
            tuple: ``(stream, name, more)``. When ``more`` is False the walk
            is exhausted.
        """
        while True:
            stream, name, error, more = self.pull_next_or_error()
            if not more:
                return None, "", False
            if error is None:
                return stream, name, True
            logger.debug("Skipping %s: %s", name, error)

    def iter_with_errors(self) -> Iterator[Filestream]:
        while True:
            stream, name, error, more = self.pull_next_or_error()
            if not more:
                return
            yield Filestream(stream, name, error)

    def __iter__(self) -> Iterator[Tuple[PeekableStream, str]]:
        while True:
            stream, name, more = self.pull_next()
            if not more:
                return
            yield stream, name

    def close(self) -> None:
        """Cancel the walk and wait for the producer thread to exit."""
        self._channel.cancel()
        with self._start_lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning("Producer for %s did not stop within %.0fs", self.name, JOIN_TIMEOUT)

    def __enter__(self) -> "ExtractionSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


Session = ExtractionSession
