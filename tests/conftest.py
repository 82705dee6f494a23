"""Shared fixtures for nestextract tests."""

import io

import pytest

from nestextract import ExtractionSession

from tests.helpers import make_gzip, make_tar


@pytest.fixture
def tar_entries():
    """Tar contents used by the x.tar.gz scenarios: two files and a directory."""
    return {
        "a.txt": b"alpha\n",
        "b/": None,
        "c.bin": bytes(range(256)),
    }


@pytest.fixture
def tar_gz(tar_entries):
    """A gzip-compressed tar without an embedded file name."""
    return make_gzip(make_tar(tar_entries))


@pytest.fixture
def open_session():
    """Factory for sessions over in-memory data; closes them at teardown."""
    sessions = []

    def _open(data: bytes, name: str, **kwargs) -> ExtractionSession:
        session = ExtractionSession(io.BytesIO(data), name, **kwargs)
        sessions.append(session)
        return session

    yield _open
    for session in sessions:
        session.close()
