"""Stream adapters used by the extractor.

Classes:
    PeekableStream: Buffered reader that can look ahead without consuming,
        and replay bytes a failed decoder already read.
    RemoteStream: Seekable HTTP-backed stream using Range requests, so
        random-access archives can be walked without a full download.

Functions:
    open_input: Open a path, URL or ``-`` (stdin) as a binary stream.
"""

import io
import logging
import sys
import time
from typing import BinaryIO, Optional

import httpx

logger = logging.getLogger(__name__)

MIN_FETCH_SIZE = 4 * 1024 * 1024  # 4 MiB
LARGE_REQUEST_THRESHOLD = 2 * 1024 * 1024  # 2 MiB
DEFAULT_FETCH_SIZE = 16 * 1024 * 1024  # 16 MiB
MAX_ATTEMPTS = 5


def supports_random_access(handle) -> bool:
    """Return True if ``handle`` can seek.

    Some file objects (members of a streamed tar, for instance) expose
    ``seekable()`` but fail when it is called, so any failure counts as no.
    """
    try:
        return bool(handle.seekable())
    except (AttributeError, OSError, ValueError):
        return False


class PeekableStream(io.RawIOBase):
    """Read-only wrapper adding look-ahead and replay to any byte stream.

    Bytes returned by ``peek`` stay queued and are handed out again by
    ``read``. Between ``mark()`` and ``unmark()`` every byte read is also
    journaled, and ``rewind()`` pushes the journal back in front of the
    queue. The extractor uses this to give a decoder a try and, if it
    fails, hand the consumer the raw stream from where the decoder started.

    Seeking is delegated to the wrapped stream when it supports it; seeking
    drops both the look-ahead queue and any mark.

    Attributes:
        raw (BinaryIO): The wrapped stream.
        random_access (bool): False when the wrapped stream only claims to
            seek. Decompressors report `seekable()` regardless of their
            source and rewind it on a backwards seek, so a decoded view
            inherits this from the stream it decodes.
    """

    def __init__(self, raw: BinaryIO, random_access: bool = True):
        self.raw = raw
        self.random_access = random_access
        self._buffer = bytearray()
        self._journal: Optional[bytearray] = None

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return self.random_access and supports_random_access(self.raw)

    def peek(self, size: int) -> bytes:
        """Return up to ``size`` upcoming bytes without consuming them.

        Fewer bytes are returned only when the wrapped stream ends first.
        """
        while len(self._buffer) < size:
            chunk = self.raw.read(size - len(self._buffer))
            if not chunk:
                break
            self._buffer += chunk
        return bytes(self._buffer[:size])

    def readinto(self, b) -> int:
        view = memoryview(b).cast("B")
        wanted = len(view)
        if wanted == 0:
            return 0

        n = min(wanted, len(self._buffer))
        if n:
            view[:n] = self._buffer[:n]
            del self._buffer[:n]
        while n < wanted:
            chunk = self.raw.read(wanted - n)
            if not chunk:
                break
            view[n:n + len(chunk)] = chunk
            n += len(chunk)

        if self._journal is not None:
            self._journal += view[:n]
        return n

    def mark(self) -> None:
        """Start journaling reads so they can be replayed with ``rewind``."""
        self._journal = bytearray()

    def rewind(self) -> None:
        """Push every byte read since ``mark`` back in front of the stream."""
        if self._journal is None:
            raise ValueError("rewind() without mark()")
        self._buffer[:0] = self._journal
        self._journal = None

    def unmark(self) -> None:
        """Stop journaling and forget what was recorded."""
        self._journal = None

    def tell(self) -> int:
        return self.raw.tell() - len(self._buffer)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_CUR:
            offset -= len(self._buffer)
        pos = self.raw.seek(offset, whence)
        self._buffer.clear()
        self._journal = None
        return pos

    def close(self) -> None:
        # The wrapped stream belongs to the frame that created it.
        self._buffer.clear()
        self._journal = None
        super().close()


class RemoteStream(io.RawIOBase):
    """Seekable, read-only view of an HTTP resource.

    Reads are served from a single cached region; a miss fetches a new
    region with a Range GET. Seeking only moves the logical position, so
    archive libraries probing the central directory at the end of a file
    cost one request rather than a download.

    Attributes:
        url (str): Remote resource URL.
        fetch_size (int): Preferred size of a fetched region in bytes.
        pos (int): Current logical offset.
        client (httpx.Client): Keep-alive client used for every request.
    """

    def __init__(self, url: str, fetch_size: int = DEFAULT_FETCH_SIZE,
                 client: Optional[httpx.Client] = None):
        """Probe ``url`` and record its size.

        Args:
            url (str): HTTP(S) URL of the resource.
            fetch_size (int): Preferred fetch size in bytes.
            client (httpx.Client | None): Client to use; one is created when omitted.

        Raises:
            ConnectionError: If the probe returns anything but 200 or 206.
            httpx.HTTPError: For transport failures during the probe.
        """
        self.url = url
        self.fetch_size = fetch_size
        self.pos = 0
        self._region = b""
        self._region_start = 0
        self.client = client or httpx.Client(
            headers={"Accept": "*/*", "Connection": "keep-alive"},
            follow_redirects=True,
            timeout=httpx.Timeout(10.0, read=300.0),
        )

        # A one-byte ranged GET reports the total size in Content-Range
        # without a separate HEAD request.
        with self.client.stream("GET", self.url, headers={"Range": "bytes=0-0"}) as r:
            if r.status_code not in (200, 206):
                raise ConnectionError(f"Server returned {r.status_code}")
            content_range = r.headers.get("Content-Range")
            if content_range:
                self._size = int(content_range.split("/")[-1])
            else:
                self._size = int(r.headers.get("Content-Length", 0))
        logger.debug("Remote stream %s: %d bytes", url, self._size)

    @property
    def size(self) -> int:
        return self._size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def tell(self) -> int:
        return self.pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            self.pos = offset
        elif whence == io.SEEK_CUR:
            self.pos += offset
        elif whence == io.SEEK_END:
            self.pos = self._size + offset
        else:
            raise ValueError(f"invalid whence ({whence})")
        if self.pos < 0:
            raise ValueError("negative seek position")
        return self.pos

    def _fetch(self, size: int) -> None:
        """Replace the cached region with one starting at ``pos``.

        Raises:
            httpx.HTTPError: If all attempts fail.
            EOFError: If the server returns no bytes for a non-empty range.
        """
        want = max(size, MIN_FETCH_SIZE) if size <= LARGE_REQUEST_THRESHOLD else max(size, self.fetch_size)
        want = min(want, self._size - self.pos)
        headers = {"Range": f"bytes={self.pos}-{self.pos + want - 1}"}

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = self.client.get(self.url, headers=headers)
                if response.status_code == 429 and attempt < MAX_ATTEMPTS:
                    wait_time = max(int(response.headers.get("Retry-After", 3)), 1)
                    logger.warning("Rate limited by %s, retrying in %ds", self.url, wait_time)
                    time.sleep(wait_time)
                    continue
                response.raise_for_status()
            except httpx.HTTPError as e:
                if attempt == MAX_ATTEMPTS:
                    raise
                wait_time = attempt * 2
                logger.warning("Range request %s failed (attempt %d): %s", headers["Range"], attempt, e)
                time.sleep(wait_time)
                continue

            if not response.content:
                raise EOFError("Server returned empty content for non-zero range request.")
            if response.status_code == 200:
                # Range ignored; the body is the whole resource.
                self._region = response.content
                self._region_start = 0
            else:
                self._region = response.content
                self._region_start = self.pos
            return

    def readinto(self, b) -> int:
        view = memoryview(b).cast("B")
        size = min(len(view), self._size - self.pos)
        n = 0
        while n < size:
            region_end = self._region_start + len(self._region)
            if not (self._region_start <= self.pos < region_end):
                self._fetch(size - n)
                region_end = self._region_start + len(self._region)
                if self.pos >= region_end:
                    raise EOFError(f"Server returned fewer bytes than the {self._size} it reported.")

            offset = self.pos - self._region_start
            chunk = min(size - n, region_end - self.pos)
            view[n:n + chunk] = self._region[offset:offset + chunk]
            self.pos += chunk
            n += chunk
        return n

    def close(self) -> None:
        self.client.close()
        super().close()


def open_input(location: str) -> BinaryIO:
    """Open ``location`` for reading.

    ``-`` is stdin, ``http://`` and ``https://`` URLs become a
    :class:`RemoteStream`, anything else is opened as a local file.
    """
    if location == "-":
        return sys.stdin.buffer
    if location.startswith(("http://", "https://")):
        return RemoteStream(location)
    return open(location, "rb")
