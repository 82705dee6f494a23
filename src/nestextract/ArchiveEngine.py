"""Format sniffing and the codec registries.

`sniff_format` classifies the first bytes of a stream; `DECODERS` and
`ENGINES` map each recognized format to the codec that unpacks it.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Type

from .CompressedStream import Bzip2Decoder, GzipDecoder, Lz4Decoder, XzDecoder
from .Protocols import ArchiveEngineProtocol, DecompressorProtocol
from .RarArchive import RarArchiveEngine
from .SevenZipArchive import SevenZipArchiveEngine
from .TarArchive import TarArchiveEngine
from .ZipArchive import ZipArchiveEngine

logger = logging.getLogger(__name__)

SNIFF_SIZE = 512


class ArchiveFormat(Enum):
    """Formats the extractor can unpack."""
    GZIP = "gzip"
    BZIP2 = "bzip2"
    XZ = "xz"
    LZ4 = "lz4"
    ZIP = "zip"
    TAR = "tar"
    RAR = "rar"
    SEVEN_ZIP = "7z"


# Archive file signatures, from Wikipedia
SIGNATURES = {
    b"\x1f\x8b": ArchiveFormat.GZIP,
    b"BZh": ArchiveFormat.BZIP2,
    b"\xfd7zXZ\x00": ArchiveFormat.XZ,
    b"\x04\x22\x4d\x18": ArchiveFormat.LZ4,  # LZ4 frame
    # zip
    b"PK\x03\x04": ArchiveFormat.ZIP,
    b"PK\x05\x06": ArchiveFormat.ZIP,  # Empty archive
    b"PK\x07\x08": ArchiveFormat.ZIP,  # Spanned archive
    # 7z
    b"7z\xbc\xaf\x27\x1c": ArchiveFormat.SEVEN_ZIP,
    # RAR
    b"Rar!\x1a\x07\x00": ArchiveFormat.RAR,  # >= v1.50
    b"Rar!\x1a\x07\x01\x00": ArchiveFormat.RAR,  # >= v5.00
}

# ustar magic lives inside the first header block, not at the start
TAR_MAGIC = b"ustar"
TAR_MAGIC_OFFSET = 257

DECODERS: Dict[ArchiveFormat, DecompressorProtocol] = {
    ArchiveFormat.GZIP: GzipDecoder(),
    ArchiveFormat.BZIP2: Bzip2Decoder(),
    ArchiveFormat.XZ: XzDecoder(),
    ArchiveFormat.LZ4: Lz4Decoder(),
}

ENGINES: Dict[ArchiveFormat, Type[ArchiveEngineProtocol]] = {
    ArchiveFormat.ZIP: ZipArchiveEngine,
    ArchiveFormat.TAR: TarArchiveEngine,
    ArchiveFormat.RAR: RarArchiveEngine,
    ArchiveFormat.SEVEN_ZIP: SevenZipArchiveEngine,
}


def sniff_format(buf: bytes) -> Optional[ArchiveFormat]:
    """Classify ``buf``, the leading bytes of a stream.

    Args:
        buf (bytes): Up to `SNIFF_SIZE` bytes peeked from the stream.

    Returns:
        ArchiveFormat | None: The detected format, or None if unrecognized.
    """
    for signature, fmt in SIGNATURES.items():
        if buf.startswith(signature):
            return fmt
    if buf[TAR_MAGIC_OFFSET:TAR_MAGIC_OFFSET + len(TAR_MAGIC)] == TAR_MAGIC:
        return ArchiveFormat.TAR
    return None
