"""Decoders for single-file compression formats.

Each decoder wraps a standard-library or `lz4` file object around the
input stream and decodes the first bytes straight away, so a payload that
only matches the signature is rejected before the extractor commits to it.
"""

import bz2
import gzip
import logging
import lzma
import struct
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

import lz4.frame

from .Errors import READ_ERRORS, DecoderError
from .FileIO import PeekableStream

logger = logging.getLogger(__name__)

# gzip header flag bits (RFC 1952)
FEXTRA, FNAME = 4, 8
GZIP_RESERVED_FLAGS = 0xE0


class StreamDecoder(ABC):
    """Shared open/prime logic for compression-only formats.

    Subclasses set the class attributes and implement `_construct`.
    """

    format_name = ""
    extension = ""
    strips_extension = True
    errors = READ_ERRORS

    @abstractmethod
    def _construct(self, stream: PeekableStream) -> BinaryIO:
        """Return the format's file object reading from ``stream``."""

    def open(self, stream: PeekableStream) -> BinaryIO:
        """Wrap ``stream`` in a decoder and decode its first bytes.

        Raises:
            DecoderError: If construction or the first decode fails.
        """
        decoder = None
        try:
            decoder = self._construct(stream)
            decoder.peek(1)
        except self.errors as e:
            if decoder is not None:
                decoder.close()
            logger.debug("%s decoder rejected stream: %s", self.format_name, e)
            raise DecoderError(f"invalid {self.format_name} stream: {e}") from e
        return decoder

    def embedded_name(self, prefix: bytes) -> Optional[str]:
        return None


class GzipDecoder(StreamDecoder):
    format_name = "gzip"
    extension = ".gz"
    # gzip names its output from the FNAME header only
    strips_extension = False

    def _construct(self, stream: PeekableStream) -> BinaryIO:
        return gzip.GzipFile(fileobj=stream, mode="rb")

    def embedded_name(self, prefix: bytes) -> Optional[str]:
        """Read the FNAME field from a gzip member header.

        Returns None when the flag is unset, the field is empty or the
        header does not fit in ``prefix``.
        """
        if len(prefix) < 10 or prefix[:2] != b"\x1f\x8b":
            return None
        flags = prefix[3]
        if not flags & FNAME or flags & GZIP_RESERVED_FLAGS:
            return None
        pos = 10
        if flags & FEXTRA:
            if len(prefix) < pos + 2:
                return None
            (xlen,) = struct.unpack("<H", prefix[pos:pos + 2])
            pos += 2 + xlen
        end = prefix.find(b"\x00", pos)
        if end <= pos:
            return None
        return prefix[pos:end].decode("latin-1")


class Bzip2Decoder(StreamDecoder):
    format_name = "bzip2"
    extension = ".bz2"

    def _construct(self, stream: PeekableStream) -> BinaryIO:
        return bz2.BZ2File(stream, mode="rb")


class XzDecoder(StreamDecoder):
    format_name = "xz"
    extension = ".xz"

    def _construct(self, stream: PeekableStream) -> BinaryIO:
        return lzma.LZMAFile(stream, mode="rb", format=lzma.FORMAT_XZ)


class Lz4Decoder(StreamDecoder):
    format_name = "lz4"
    extension = ".lz4"

    def _construct(self, stream: PeekableStream) -> BinaryIO:
        return lz4.frame.LZ4FrameFile(stream, mode="rb")
