"""Tests for the codec adapters."""

import io
import zipfile
from unittest.mock import MagicMock, patch

import py7zr
import pytest
import rarfile

from nestextract.CompressedStream import Bzip2Decoder, GzipDecoder, Lz4Decoder, StreamDecoder, XzDecoder
from nestextract.Errors import ArchiveIterationError, DecoderError, EntryOpenError
from nestextract.FileIO import PeekableStream
from nestextract.Protocols import ArchiveMember
from nestextract.RarArchive import RarArchiveEngine
from nestextract.SevenZipArchive import SevenZipArchiveEngine
from nestextract.TarArchive import TarArchiveEngine
from nestextract.ZipArchive import ZipArchiveEngine

from tests.helpers import NonSeekableStream, make_bzip2, make_gzip, make_lz4, make_tar, make_xz, make_zip


def peekable(data: bytes) -> PeekableStream:
    return PeekableStream(io.BytesIO(data))


class TestStreamDecoders:

    @pytest.mark.parametrize("decoder, compress", [
        (GzipDecoder(), make_gzip),
        (Bzip2Decoder(), make_bzip2),
        (XzDecoder(), make_xz),
        (Lz4Decoder(), make_lz4),
    ])
    def test_decodes(self, decoder, compress):
        payload = b"some payload " * 1000
        with decoder.open(peekable(compress(payload))) as reader:
            assert reader.read() == payload

    @pytest.mark.parametrize("decoder, garbage", [
        (GzipDecoder(), b"\x1f\x8bgarbage that is not deflate"),
        (Bzip2Decoder(), b"BZh9 this is not a bzip2 block at all"),
        (XzDecoder(), b"\xfd7zXZ\x00 broken stream header"),
        (Lz4Decoder(), b"\x04\x22\x4d\x18 broken frame descriptor"),
    ])
    def test_malformed_payload(self, decoder, garbage):
        with pytest.raises(DecoderError) as excinfo:
            decoder.open(peekable(garbage))
        assert excinfo.value.__cause__ is not None

    def test_gzip_embedded_name(self):
        data = make_gzip(b"x", name="report.csv")
        assert GzipDecoder().embedded_name(data[:512]) == "report.csv"

    def test_gzip_strips_gz_from_stored_name(self):
        # gzip itself drops .gz when recording the original name
        data = make_gzip(b"x", name="bundle.tar.gz")
        assert GzipDecoder().embedded_name(data[:512]) == "bundle.tar"

    def test_gzip_without_name(self):
        assert GzipDecoder().embedded_name(make_gzip(b"x")[:512]) is None

    def test_gzip_name_after_extra_field(self):
        header = b"\x1f\x8b\x08" + bytes([0x04 | 0x08]) + b"\x00" * 6
        header += b"\x03\x00abc" + b"inner.txt\x00"
        assert GzipDecoder().embedded_name(header) == "inner.txt"

    def test_gzip_truncated_header(self):
        assert GzipDecoder().embedded_name(b"\x1f\x8b\x08\x08\x00") is None
        assert GzipDecoder().embedded_name(b"\x1f\x8b\x08\x08" + b"\x00" * 6 + b"unterminated") is None

    def test_base_decoder_is_abstract(self):
        with pytest.raises(TypeError):
            StreamDecoder()

    def test_only_gzip_names_from_header(self):
        assert not GzipDecoder().strips_extension
        for decoder in (Bzip2Decoder(), XzDecoder(), Lz4Decoder()):
            assert decoder.strips_extension
            assert decoder.embedded_name(b"anything") is None


def corrupt_second_member(data: bytes) -> bytes:
    """Break the local header signature of the second zip member."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        offset = zf.infolist()[1].header_offset
    broken = bytearray(data)
    broken[offset:offset + 4] = b"XXXX"
    return bytes(broken)


class TestZipArchiveEngine:

    def test_members_in_order(self):
        engine = ZipArchiveEngine(peekable(make_zip({"a.txt": b"A", "d/": b"", "d/b.txt": b"B"})))
        members = list(engine.iter_members())
        assert [(m.name, m.is_dir) for m in members] == [("a.txt", False), ("d/", True), ("d/b.txt", False)]
        with engine.open_member(members[2]) as f:
            assert f.read() == b"B"
        engine.close()

    def test_bad_archive(self):
        with pytest.raises(DecoderError):
            ZipArchiveEngine(peekable(b"PK\x03\x04 not really a zip file"))

    def test_member_open_failure(self):
        data = corrupt_second_member(make_zip({"a.txt": b"A", "b.txt": b"B", "c.txt": b"C"}))
        engine = ZipArchiveEngine(peekable(data))
        members = list(engine.iter_members())
        with pytest.raises(EntryOpenError):
            engine.open_member(members[1])
        with engine.open_member(members[2]) as f:
            assert f.read() == b"C"


class TestTarArchiveEngine:

    def test_members(self):
        engine = TarArchiveEngine(peekable(make_tar({"a.txt": b"A", "d": None, "d/b.txt": b"B"})))
        seen = []
        for member in engine.iter_members():
            content = None if member.is_dir else engine.open_member(member).read()
            seen.append((member.name, member.is_dir, content))
        assert seen == [("a.txt", False, b"A"), ("d", True, None), ("d/b.txt", False, b"B")]

    def test_truncated_archive(self):
        data = make_tar({"a.txt": b"A" * 100, "b.txt": b"B" * 2000})
        # cut inside the data of b.txt
        engine = TarArchiveEngine(peekable(data[:1636]))
        members = engine.iter_members()
        assert next(members).name == "a.txt"
        assert next(members).name == "b.txt"
        with pytest.raises(ArchiveIterationError):
            next(members)

    def test_not_a_tar(self):
        with pytest.raises(DecoderError):
            TarArchiveEngine(peekable(b"\x01" * 1024))


class TestSevenZipArchiveEngine:

    @pytest.fixture
    def seven_zip(self):
        buf = io.BytesIO()
        with py7zr.SevenZipFile(buf, "w") as archive:
            archive.writestr(b"first", "one.txt")
            archive.writestr(b"second", "two.txt")
        return buf.getvalue()

    def test_members(self, seven_zip):
        engine = SevenZipArchiveEngine(peekable(seven_zip))
        members = [m for m in engine.iter_members() if not m.is_dir]
        contents = {m.name: engine.open_member(m).read() for m in members}
        assert contents == {"one.txt": b"first", "two.txt": b"second"}
        engine.close()

    def test_bad_archive(self):
        with pytest.raises(DecoderError):
            SevenZipArchiveEngine(peekable(b"7z\xbc\xaf\x27\x1c" + b"\x00" * 64))


class TestRarArchiveEngine:
    """rarfile is mocked; building RAR archives needs the proprietary rar tool."""

    def _info(self, name, is_dir=False):
        info = MagicMock()
        info.filename = name
        info.is_dir.return_value = is_dir
        return info

    def test_members_and_open(self):
        archive = MagicMock()
        archive.infolist.return_value = [self._info("d", is_dir=True), self._info("d/a.txt")]
        archive.open.return_value = io.BytesIO(b"A")
        with patch("nestextract.RarArchive.rarfile.RarFile", return_value=archive):
            engine = RarArchiveEngine(peekable(b"Rar!\x1a\x07\x00"), password="pw")
            members = list(engine.iter_members())
            assert [(m.name, m.is_dir) for m in members] == [("d", True), ("d/a.txt", False)]
            assert engine.open_member(members[1]).read() == b"A"
        archive.open.assert_called_once_with(members[1].info, pwd="pw")

    def test_non_seekable_stream_is_spooled(self):
        data = b"Rar!\x1a\x07\x01\x00" + b"\x00" * 64
        archive = MagicMock()
        with patch("nestextract.RarArchive.rarfile.RarFile", return_value=archive) as rar_file:
            engine = RarArchiveEngine(PeekableStream(NonSeekableStream(data)))
        (source,), _ = rar_file.call_args
        assert source is engine.spool
        assert source.read() == data
        engine.close()
        assert source.closed
        archive.close.assert_called_once()

    def test_bad_archive(self):
        with patch("nestextract.RarArchive.rarfile.RarFile", side_effect=rarfile.BadRarFile("broken")):
            with pytest.raises(DecoderError):
                RarArchiveEngine(peekable(b"Rar!\x1a\x07\x00"))

    @pytest.mark.parametrize("exc", [
        rarfile.PasswordRequired("File is encrypted"),
        rarfile.RarCannotExec("Cannot find working tool"),
        rarfile.BadRarFile("crc error"),
    ])
    def test_member_open_failure(self, exc):
        archive = MagicMock()
        archive.open.side_effect = exc
        with patch("nestextract.RarArchive.rarfile.RarFile", return_value=archive):
            engine = RarArchiveEngine(peekable(b"Rar!\x1a\x07\x00"))
            with pytest.raises(EntryOpenError) as excinfo:
                engine.open_member(ArchiveMember("a.txt", False, self._info("a.txt")))
        assert excinfo.value.__cause__ is exc
