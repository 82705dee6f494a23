"""Error conditions carried by extracted filestreams.

None of these are raised out of a walk. The extractor attaches an instance
to the filestream it concerns and hands it to the consumer, so every
failure is returned data. The original codec exception, when there is
one, is available as ``__cause__``.
"""

import lzma
import tarfile
import zipfile
import zlib

import rarfile

# What reading through an arbitrary stack of decoders and archive members
# can raise. lz4 reports corrupt frames as RuntimeError.
READ_ERRORS = (
    OSError,
    EOFError,
    ValueError,
    RuntimeError,
    zlib.error,
    lzma.LZMAError,
    tarfile.TarError,
    zipfile.BadZipFile,
    rarfile.Error,
)


class ExtractionError(Exception):
    """Base class for all extraction conditions."""


class DecoderError(ExtractionError):
    """A format signature matched but the decoder could not be constructed.

    The filestream carrying this error holds the raw stream, rewound to the
    position the decoder started reading from.
    """


class NestedArchiveError(ExtractionError):
    """Reader is a nested archive that cannot be extracted.

    Raised for formats that need random access (zip, 7z) when the
    handle cannot seek. The attached stream is still readable and holds the
    archive bytes, so callers may treat it as an opaque blob.
    """

    def __init__(self, message: str = "reader is nested archive that cannot be extracted"):
        super().__init__(message)


class EntryOpenError(ExtractionError):
    """A single member of a multi-entry container failed to open."""


class EndOfEntries(ExtractionError):
    """A streaming container has no more entries."""

    def __init__(self, message: str = "end of archive entries"):
        super().__init__(message)


class ArchiveIterationError(EndOfEntries):
    """A streaming container stopped because reading the next entry failed."""


class StreamReadError(ExtractionError):
    """Reading the start of a stream failed, so its format is unknown.

    Typical for members of a truncated or corrupt container. The attached
    stream holds whatever could still be read.
    """
