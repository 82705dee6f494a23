"""Codec protocol definitions.

This module declares the two interfaces the extractor dispatches to:
`DecompressorProtocol` for single-file compression formats (gzip, bzip2,
xz, lz4) and `ArchiveEngineProtocol` for multi-entry containers (zip, tar,
rar, 7z). Implementations are interchangeable; the extractor only relies on
what is declared here.
"""

from dataclasses import dataclass
from typing import BinaryIO, ClassVar, Iterator, Optional, Protocol

from .FileIO import PeekableStream


@dataclass
class ArchiveMember:
    """One entry of a multi-entry container.

    Attributes:
        name (str): Path of the entry inside the archive.
        is_dir (bool): True for directory markers, which are never opened.
        info (object): Engine-specific entry record passed back to `open_member`.
    """
    name: str
    is_dir: bool
    info: object = None


class DecompressorProtocol(Protocol):
    """Protocol describing a single-file compression format.

    Attributes:
        extension (str): Canonical file extension, including the dot.
        strips_extension (bool): Whether the output may be named by removing
            `extension` when the header carries no file name.
    """
    extension: str
    strips_extension: bool

    def open(self, stream: PeekableStream) -> BinaryIO:
        """Return a reader yielding the decompressed bytes of ``stream``.

        Implementations should decode enough to detect a malformed payload
        before returning.

        Raises:
            DecoderError: If ``stream`` is not a valid payload for the format.
        """
        ...

    def embedded_name(self, prefix: bytes) -> Optional[str]:
        """Return the original file name stored in the container header, if any.

        Args:
            prefix (bytes): Leading bytes of the compressed stream, peeked.
        """
        ...


class ArchiveEngineProtocol(Protocol):
    """Protocol describing a multi-entry container.

    Engines are constructed over a stream and an optional password and
    raise `DecoderError` from the constructor if the container is unusable.

    Attributes:
        requires_random_access (bool): The engine seeks in the stream and must
            not be constructed over one that cannot.
        reports_end_of_entries (bool): The extractor emits an `EndOfEntries`
            marker after the last entry.
    """
    requires_random_access: ClassVar[bool]
    reports_end_of_entries: ClassVar[bool]

    def iter_members(self) -> Iterator[ArchiveMember]:
        """Yield entries in archive order.

        Raises:
            ArchiveIterationError: If reading the next entry fails. The
                iteration cannot continue afterwards.
        """
        ...

    def open_member(self, member: ArchiveMember) -> BinaryIO:
        """Return a reader for a regular entry.

        Raises:
            EntryOpenError: If the entry cannot be opened.
        """
        ...

    def close(self) -> None:
        ...
