"""The unit that flows through an extraction: a stream, a name and an error.

Names are built by joining segments with a separator (``:`` by default).
They are plain text and are never resolved against a filesystem.
"""

import os.path
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .Errors import ExtractionError

DEFAULT_SEPARATOR = ":"


@dataclass
class Filestream:
    """A byte stream plus the hierarchical name it was found under.

    Attributes:
        handle (BinaryIO): Readable byte stream, owned by whoever holds the filestream.
        name (str): Hierarchical name, e.g. ``"x.tar.gz:docs/a.txt"``.
        error (ExtractionError | None): Condition attached when the stream is not
            a plain leaf.
    """
    handle: BinaryIO
    name: str
    error: Optional[ExtractionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def join_name(parent: str, child: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Append ``child`` as a new segment of ``parent``."""
    return f"{parent}{separator}{child}"


def last_segment(name: str, separator: str = DEFAULT_SEPARATOR) -> str:
    return name.rsplit(separator, 1)[-1]


def replace_last_segment(name: str, segment: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Swap the final segment of ``name`` for ``segment``."""
    head, sep, _ = name.rpartition(separator)
    return f"{head}{sep}{segment}"


def strip_extension(name: str, extension: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Remove ``extension`` from the last segment of ``name``.

    Only the final extension of the last segment is considered, and it must
    equal ``extension`` exactly. Anything else leaves the name unchanged:

        >>> strip_extension("a.zip:notes.txt.bz2", ".bz2")
        'a.zip:notes.txt'
        >>> strip_extension("notes.bz2.txt", ".bz2")
        'notes.bz2.txt'
    """
    base = last_segment(name, separator)
    stem, ext = os.path.splitext(base)
    if ext != extension or not stem:
        return name
    return replace_last_segment(name, stem, separator)
