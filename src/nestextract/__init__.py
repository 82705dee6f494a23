"""nestextract package initializer.

This module provides the package-level public surface for the
`nestextract` library, which recursively unpacks archives and compressed
streams and hands out every leaf stream under a hierarchical name:

- __version__: Package version string.
- ExtractionSession / Session: Pull leaves from an input one at a time.
- Extractor: The underlying generator-based walk, usable without a thread.
- sniff_format / ArchiveFormat: Format detection from a byte prefix.
- The error conditions attached to filestreams that are not plain leaves.
- cli: The CLI entrypoint function (click command).

Importing the package does no I/O; work starts on the first pull.

Example:
    from nestextract import ExtractionSession
    with open("x.tar.gz", "rb") as f:
        for stream, name in ExtractionSession(f, "x.tar.gz"):
            print(name, stream.read(16))
"""

# Public version string
__version__ = "0.1.0"

from .ArchiveEngine import SNIFF_SIZE, ArchiveFormat, sniff_format
from .Errors import (
    ArchiveIterationError,
    DecoderError,
    EndOfEntries,
    EntryOpenError,
    ExtractionError,
    NestedArchiveError,
    StreamReadError,
)
from .Extractor import Extractor
from .FileIO import PeekableStream, RemoteStream, open_input
from .Filestream import DEFAULT_SEPARATOR, Filestream
from .Session import ExtractionSession, Session

# Expose the CLI command object so callers can reuse or register it in other tools.
from .CLI import extract as cli  # click CLI command

# Define the public API
__all__ = [
    "__version__",
    "ArchiveFormat",
    "ArchiveIterationError",
    "DecoderError",
    "DEFAULT_SEPARATOR",
    "EndOfEntries",
    "EntryOpenError",
    "ExtractionError",
    "ExtractionSession",
    "Extractor",
    "Filestream",
    "NestedArchiveError",
    "PeekableStream",
    "RemoteStream",
    "Session",
    "SNIFF_SIZE",
    "StreamReadError",
    "cli",
    "open_input",
    "sniff_format",
]
