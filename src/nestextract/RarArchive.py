import logging
import shutil
import tempfile
from typing import BinaryIO, Iterator

import rarfile

from .Errors import READ_ERRORS, DecoderError, EntryOpenError
from .FileIO import PeekableStream
from .Protocols import ArchiveEngineProtocol, ArchiveMember

logger = logging.getLogger(__name__)

# Archives read from a non-seekable source are copied here first; larger
# ones roll over to a temporary file.
SPOOL_MAX_MEMORY = 16 * 1024 * 1024  # 16 MiB


class RarArchiveEngine(ArchiveEngineProtocol):
    """
    A class to walk RAR archives using the rarfile library.

    rarfile parses headers itself but seeks while doing so, and hands
    decompression of packed members to an external tool (unrar, unar,
    bsdtar or 7z). A missing tool therefore shows up per member as an
    `EntryOpenError`, not as a failure to open the archive.

    The extractor treats RAR as a streaming container: a stream that cannot
    seek (a tar member, stdin) is spooled into a temporary file and rarfile
    reads the copy.

    Attributes:
        stream (PeekableStream): The stream holding the archive.
        password (str | None): The password for encrypted members, if any.
        spool (tempfile.SpooledTemporaryFile | None): Seekable copy of a
            non-seekable stream.
        archive (rarfile.RarFile): The rarfile object representing the archive.
    """
    requires_random_access = False
    reports_end_of_entries = True

    def __init__(self, stream: PeekableStream, password: str | None = None) -> None:
        """
        Initializes the RarArchiveEngine over a stream and optional password.

        Raises:
            DecoderError: If the stream cannot be read or the RAR headers
                cannot be parsed.
        """
        self.stream = stream
        self.password = password
        self.spool = None

        try:
            source = self.stream if self.stream.seekable() else self._spool()
            self.archive = rarfile.RarFile(source)
        except READ_ERRORS as e:
            logger.warning("Bad RAR file: %s", e)
            if self.spool is not None:
                self.spool.close()
            raise DecoderError(f"invalid rar archive: {e}") from e

    def _spool(self) -> BinaryIO:
        self.spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY)
        shutil.copyfileobj(self.stream, self.spool)
        logger.debug("Spooled %d bytes of RAR archive", self.spool.tell())
        self.spool.seek(0)
        return self.spool

    def iter_members(self) -> Iterator[ArchiveMember]:
        for info in self.archive.infolist():
            yield ArchiveMember(name=info.filename, is_dir=info.is_dir(), info=info)

    def open_member(self, member: ArchiveMember) -> BinaryIO:
        """
        Opens a member of the RAR archive.

        Raises:
            EntryOpenError: If the member needs a password, the decompression
                tool is missing, or the member data is corrupt.
        """
        try:
            return self.archive.open(member.info, pwd=self.password)
        except rarfile.PasswordRequired as e:
            logger.warning("%s requires a password", member.name)
            raise EntryOpenError(f"cannot open {member.name}: {e}") from e
        except rarfile.RarCannotExec as e:
            logger.warning("No RAR decompression tool found in PATH: %s", e)
            raise EntryOpenError(f"cannot open {member.name}: {e}") from e
        except READ_ERRORS as e:
            logger.warning("Failed to open rar member %s: %s", member.name, e)
            raise EntryOpenError(f"cannot open {member.name}: {e}") from e

    def close(self) -> None:
        self.archive.close()
        if self.spool is not None:
            self.spool.close()
