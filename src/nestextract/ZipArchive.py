"""ZIP archive engine adapter.

Provides a minimal adapter around the standard library `zipfile.ZipFile`
class to enumerate and open members of a ZIP archive. ZIP keeps its
central directory at the end of the file, so the engine needs a seekable
stream; the extractor checks that before constructing it.
"""

import logging
import zipfile
from typing import BinaryIO, Iterator

from .Errors import READ_ERRORS, DecoderError, EntryOpenError
from .FileIO import PeekableStream
from .Protocols import ArchiveEngineProtocol, ArchiveMember

logger = logging.getLogger(__name__)


class ZipArchiveEngine(ArchiveEngineProtocol):
    """
    ZIP archive engine using the stdlib zipfile module.

    Attributes:
        stream (PeekableStream): The seekable stream holding the archive.
        password (bytes | None): The password used for encrypted members, if any.
        archive (zipfile.ZipFile): The ZipFile instance used to inspect and open members.
    """
    requires_random_access = True
    reports_end_of_entries = False

    def __init__(self, stream: PeekableStream, password: str | None = None) -> None:
        """
        Initialize the ZipArchiveEngine.

        Args:
            stream (PeekableStream): The seekable stream holding the archive.
            password (str | None): Optional password for encrypted members.

        Raises:
            DecoderError: If the stream does not contain a readable ZIP archive.
        """
        self.stream = stream
        self.password = password.encode("utf-8") if password else None
        try:
            self.archive = zipfile.ZipFile(self.stream)
        except READ_ERRORS as e:
            logger.warning("Bad zip file: %s", e)
            raise DecoderError(f"invalid zip archive: {e}") from e
        if self.password:
            self.archive.setpassword(self.password)

    def iter_members(self) -> Iterator[ArchiveMember]:
        """Yield every central directory entry in archive order."""
        for info in self.archive.infolist():
            yield ArchiveMember(name=info.filename, is_dir=info.is_dir(), info=info)

    def open_member(self, member: ArchiveMember) -> BinaryIO:
        """
        Open a member for reading.

        Raises:
            EntryOpenError: If the member is encrypted without a usable password,
                uses an unsupported compression method, or has a corrupt header.
        """
        try:
            return self.archive.open(member.info)
        except RuntimeError as e:
            # zipfile raises RuntimeError for encrypted members or bad passwords
            if "encrypted" in str(e).casefold():
                logger.warning("%s requires a password", member.name)
            elif "bad password" in str(e).casefold():
                logger.warning("Wrong password for %s", member.name)
            raise EntryOpenError(f"cannot open {member.name}: {e}") from e
        except (NotImplementedError, *READ_ERRORS) as e:
            logger.warning("Failed to open zip member %s: %s", member.name, e)
            raise EntryOpenError(f"cannot open {member.name}: {e}") from e

    def close(self) -> None:
        self.archive.close()
