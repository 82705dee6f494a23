"""7z archive engine adapter.

This module contains a small adapter around `py7zr.SevenZipFile`. py7zr
has no per-member reader; it pushes decoded data into writer objects made
by a factory. The adapter supplies a factory of in-memory writers and
hands each extracted member to the extractor as a `BytesIO`.
"""

import io
import logging
from typing import BinaryIO, Dict, Iterator

import py7zr

from .Errors import READ_ERRORS, DecoderError, EntryOpenError
from .FileIO import PeekableStream
from .Protocols import ArchiveEngineProtocol, ArchiveMember

logger = logging.getLogger(__name__)


class MemoryWriter(py7zr.io.Py7zIO):
    """Write target for one extracted member, kept in memory.

    Attributes:
        buffer (io.BytesIO): Bytes written so far.
    """
    def __init__(self):
        self.buffer = io.BytesIO()

    def write(self, data: bytes) -> int:
        return self.buffer.write(data)

    def read(self, size: int | None = None) -> bytes:
        return self.buffer.read(size)

    def flush(self) -> None:
        pass

    def seek(self, offset: int, whence: int = 0) -> int:
        return self.buffer.seek(offset, whence)

    def size(self) -> int:
        return self.buffer.getbuffer().nbytes


class MemoryWriterFactory(py7zr.io.WriterFactory):
    """Factory handing py7zr a fresh `MemoryWriter` per member and keeping them by name."""
    def __init__(self):
        self.products: Dict[str, MemoryWriter] = {}

    def create(self, filename: str) -> MemoryWriter:
        writer = MemoryWriter()
        self.products[filename] = writer
        return writer


class SevenZipArchiveEngine(ArchiveEngineProtocol):
    """
    7z archive engine using py7zr.

    Members are extracted one at a time, each fully into memory, when the
    extractor opens them. The archive state is reset before every
    extraction because py7zr keeps internal read pointers.

    Attributes:
        stream (PeekableStream): The seekable stream holding the archive.
        password (str | None): The password for the archive, if any.
        archive (py7zr.SevenZipFile): The py7zr archive instance.
    """
    requires_random_access = True
    reports_end_of_entries = False

    def __init__(self, stream: PeekableStream, password: str | None = None) -> None:
        """
        Initialize the SevenZipArchiveEngine.

        Raises:
            DecoderError: If the archive headers are invalid, or encrypted
                headers need a password that was not given.
        """
        self.stream = stream
        self.password = password

        try:
            self.archive = py7zr.SevenZipFile(self.stream, mode="r", password=self.password)
        except py7zr.exceptions.PasswordRequired as e:
            logger.warning("7z archive headers require a password")
            raise DecoderError(f"invalid 7z archive: {e}") from e
        except (py7zr.exceptions.ArchiveError, *READ_ERRORS) as e:
            logger.warning("Bad 7z file: %s", e)
            raise DecoderError(f"invalid 7z archive: {e}") from e

    def iter_members(self) -> Iterator[ArchiveMember]:
        for info in self.archive.list():
            yield ArchiveMember(name=info.filename, is_dir=info.is_directory, info=info)

    def open_member(self, member: ArchiveMember) -> BinaryIO:
        """
        Extract a single member into memory.

        Raises:
            EntryOpenError: If decoding fails or py7zr produced no data for the member.
        """
        self.archive.reset()
        factory = MemoryWriterFactory()
        try:
            self.archive.extract(targets=[member.name], factory=factory)
        except (py7zr.exceptions.ArchiveError, py7zr.exceptions.PasswordRequired, *READ_ERRORS) as e:
            logger.warning("Failed to extract 7z member %s: %s", member.name, e)
            raise EntryOpenError(f"cannot open {member.name}: {e}") from e

        # py7zr may hand the factory an output path rather than the
        # archive name; exactly one target was requested either way.
        if len(factory.products) != 1:
            raise EntryOpenError(f"{member.name} was not produced by the archive")
        writer = next(iter(factory.products.values()))
        writer.buffer.seek(0)
        return writer.buffer

    def close(self) -> None:
        self.archive.close()
