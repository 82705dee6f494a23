import logging
import tarfile
from typing import BinaryIO, Iterator

from .Errors import READ_ERRORS, ArchiveIterationError, DecoderError, EntryOpenError
from .FileIO import PeekableStream
from .Protocols import ArchiveEngineProtocol, ArchiveMember

logger = logging.getLogger(__name__)


class TarArchiveEngine(ArchiveEngineProtocol):
    """Streaming tar reader.

    The archive is opened in ``r|`` mode, so members are read strictly in
    order and each member's reader is only valid until the next member is
    requested. Compressed tarballs never reach this engine: the extractor
    peels the compression layer off first and sniffs the result again.
    """
    requires_random_access = False
    reports_end_of_entries = True

    def __init__(self, stream: PeekableStream, password: str | None = None) -> None:
        self.stream = stream
        try:
            self.archive = tarfile.open(fileobj=self.stream, mode="r|")
        except READ_ERRORS as e:
            logger.warning("Bad tar archive: %s", e)
            raise DecoderError(f"invalid tar archive: {e}") from e

    def iter_members(self) -> Iterator[ArchiveMember]:
        while True:
            try:
                info = self.archive.next()
            except READ_ERRORS as e:
                logger.warning("Tar iteration stopped: %s", e)
                raise ArchiveIterationError(f"reading tar header failed: {e}") from e
            if info is None:
                return
            # Only regular files carry data worth recursing into; links,
            # devices and fifos are skipped like directories.
            yield ArchiveMember(name=info.name, is_dir=not info.isfile(), info=info)

    def open_member(self, member: ArchiveMember) -> BinaryIO:
        try:
            reader = self.archive.extractfile(member.info)
        except READ_ERRORS as e:
            raise EntryOpenError(f"cannot open {member.name}: {e}") from e
        if reader is None:
            raise EntryOpenError(f"{member.name} has no data")
        return reader

    def close(self) -> None:
        self.archive.close()
