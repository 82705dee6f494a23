"""Builders for in-memory archives used across the test suite."""

import bz2
import gzip
import io
import lzma
import tarfile
import zipfile
from typing import Dict, List, Optional, Tuple

import lz4.frame

from nestextract import ExtractionSession, StreamReadError


class NonSeekableStream(io.RawIOBase):
    """Readable stream that refuses random access, like a pipe."""

    def __init__(self, data: bytes):
        self._inner = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, b) -> int:
        data = self._inner.read(len(b))
        b[:len(data)] = data
        return len(data)


def make_tar(entries: Dict[str, Optional[bytes]]) -> bytes:
    """Build a tar archive. A ``None`` value makes a directory entry."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tf:
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            if data is None:
                info.type = tarfile.DIRTYPE
                tf.addfile(info)
            else:
                info.size = len(data)
                tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_zip(entries: Dict[str, bytes]) -> bytes:
    """Build a zip archive. Names ending in ``/`` become directory entries."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def make_gzip(data: bytes, name: str = "") -> bytes:
    """Compress ``data``; a non-empty ``name`` is stored in the FNAME header."""
    buf = io.BytesIO()
    with gzip.GzipFile(filename=name, mode="wb", fileobj=buf, mtime=0) as gz:
        gz.write(data)
    return buf.getvalue()


def make_bzip2(data: bytes) -> bytes:
    return bz2.compress(data)


def make_xz(data: bytes) -> bytes:
    return lzma.compress(data, format=lzma.FORMAT_XZ)


def make_lz4(data: bytes) -> bytes:
    return lz4.frame.compress(data)


def drain(session: ExtractionSession) -> List[Tuple[str, Optional[Exception], Optional[bytes]]]:
    """Pull every event from ``session``, reading each stream before the next pull."""
    events = []
    while True:
        stream, name, error, more = session.pull_next_or_error()
        if not more:
            return events
        content = None if isinstance(error, StreamReadError) else stream.read()
        events.append((name, error, content))


def leaves(session: ExtractionSession) -> List[Tuple[str, bytes]]:
    """Pull every non-error leaf from ``session`` with its content."""
    result = []
    while True:
        stream, name, more = session.pull_next()
        if not more:
            return result
        result.append((name, stream.read()))
