"""Recursive descent through archives and compressed streams.

`Extractor.walk` is a generator: it yields leaf filestreams (and error
filestreams) in depth-first pre-order and only advances when the next item
is requested. A leaf's stream is only valid until then, since advancing
may read past it or close the decoder underneath it.
"""

import io
import logging
from typing import Dict, Iterator, Optional, Type

from .ArchiveEngine import DECODERS, ENGINES, SNIFF_SIZE, ArchiveFormat, sniff_format
from .Errors import (
    READ_ERRORS,
    ArchiveIterationError,
    DecoderError,
    EndOfEntries,
    EntryOpenError,
    NestedArchiveError,
    StreamReadError,
)
from .FileIO import PeekableStream
from .Filestream import (
    DEFAULT_SEPARATOR,
    Filestream,
    join_name,
    last_segment,
    replace_last_segment,
    strip_extension,
)
from .Protocols import ArchiveEngineProtocol, DecompressorProtocol

logger = logging.getLogger(__name__)


class Extractor:
    """Recursively unpacks a filestream into its leaves.

    Every filestream the walk builds is resolved exactly once: it is either
    recursed into or yielded, never both and never neither.

    Attributes:
        separator (str): Joins name segments.
        password (str | None): Tried on encrypted zip, rar and 7z members.
        sniff_size (int): Number of bytes peeked to detect a format.
        decoders (dict): Single-file compression codecs by format.
        engines (dict): Multi-entry container engines by format.
    """

    def __init__(self, separator: str = DEFAULT_SEPARATOR, password: Optional[str] = None,
                 sniff_size: int = SNIFF_SIZE,
                 decoders: Optional[Dict[ArchiveFormat, DecompressorProtocol]] = None,
                 engines: Optional[Dict[ArchiveFormat, Type[ArchiveEngineProtocol]]] = None):
        self.separator = separator
        self.password = password
        self.sniff_size = sniff_size
        self.decoders = DECODERS if decoders is None else decoders
        self.engines = ENGINES if engines is None else engines

    def walk(self, fs: Filestream) -> Iterator[Filestream]:
        """Yield every leaf reachable from ``fs``.

        Yielded streams are always `PeekableStream` instances.
        """
        stream = fs.handle if isinstance(fs.handle, PeekableStream) else PeekableStream(fs.handle)
        try:
            prefix = stream.peek(self.sniff_size)
        except READ_ERRORS as e:
            logger.warning("%s: cannot read stream: %s", fs.name, e)
            error = StreamReadError(f"cannot read {fs.name}: {e}")
            error.__cause__ = e
            yield Filestream(stream, fs.name, error)
            return
        fmt = sniff_format(prefix)

        if fmt in self.decoders:
            logger.debug("%s: %s stream", fs.name, fmt.value)
            yield from self._walk_compressed(stream, fs.name, self.decoders[fmt], prefix)
        elif fmt in self.engines:
            logger.debug("%s: %s archive", fs.name, fmt.value)
            yield from self._walk_archive(stream, fs.name, self.engines[fmt])
        else:
            yield Filestream(stream, fs.name)

    def decompressed_name(self, name: str, codec: DecompressorProtocol, prefix: bytes) -> str:
        """Name the output of a compression-only container.

        A file name stored in the container header replaces the file name
        of the last segment, keeping any directory part of an archive entry;
        otherwise the codec's extension is stripped from the last segment
        when present.
        """
        embedded = codec.embedded_name(prefix)
        if embedded:
            directory, slash, _ = last_segment(name, self.separator).rpartition("/")
            return replace_last_segment(name, f"{directory}{slash}{embedded}", self.separator)
        if codec.strips_extension:
            return strip_extension(name, codec.extension, self.separator)
        return name

    def _walk_compressed(self, stream: PeekableStream, name: str,
                         codec: DecompressorProtocol, prefix: bytes) -> Iterator[Filestream]:
        stream.mark()
        try:
            decoded = codec.open(stream)
        except DecoderError as e:
            logger.warning("%s: %s", name, e)
            stream.rewind()
            yield Filestream(stream, name, e)
            return
        stream.unmark()

        # decoders claim to seek even when their source cannot
        view = PeekableStream(decoded, random_access=stream.seekable())
        try:
            yield from self.walk(Filestream(view, self.decompressed_name(name, codec, prefix)))
        finally:
            decoded.close()

    def _walk_archive(self, stream: PeekableStream, name: str,
                      engine_cls: Type[ArchiveEngineProtocol]) -> Iterator[Filestream]:
        seekable = stream.seekable()
        if engine_cls.requires_random_access and not seekable:
            logger.debug("%s: nested archive needs a seekable stream", name)
            yield Filestream(stream, name, NestedArchiveError())
            return

        # engines that seek would discard a mark, so seekable streams are
        # restored by position instead
        start = stream.tell() if seekable else None
        if start is None:
            stream.mark()

        try:
            engine = engine_cls(stream, self.password)
        except DecoderError as e:
            logger.warning("%s: %s", name, e)
            self._restore(stream, name, start)
            yield Filestream(stream, name, e)
            return
        if start is None:
            stream.unmark()

        try:
            yield from self._walk_members(engine, stream, name)
        finally:
            engine.close()

    def _restore(self, stream: PeekableStream, name: str, start: Optional[int]) -> None:
        """Put ``stream`` back where a failed engine started reading it."""
        if start is None:
            stream.rewind()
            return
        try:
            stream.seek(start)
        except READ_ERRORS as e:
            logger.warning("%s: cannot seek back to the start of the archive: %s", name, e)

    def _walk_members(self, engine: ArchiveEngineProtocol, stream: PeekableStream,
                      name: str) -> Iterator[Filestream]:
        try:
            for member in engine.iter_members():
                if member.is_dir:
                    continue
                child = join_name(name, member.name, self.separator)
                try:
                    handle = engine.open_member(member)
                except EntryOpenError as e:
                    yield Filestream(PeekableStream(io.BytesIO()), child, e)
                    continue
                try:
                    yield from self.walk(Filestream(handle, child))
                finally:
                    handle.close()
        except ArchiveIterationError as e:
            yield Filestream(stream, name, e)
            return

        if engine.reports_end_of_entries:
            yield Filestream(stream, name, EndOfEntries())
