"""Tests for request body preparation."""

import base64
import hashlib

import pytest

from r2call.body import (
    EMPTY_BODY,
    UNSIGNED_PAYLOAD,
    BodyOptions,
    BufferedBody,
    StreamedBody,
    content_sha256,
    load_body,
    parse_byte_range,
    resolve_content_md5,
)
from r2call.errors import ConfigurationError
from r2call.files import LocalFile
from r2call.hashing import EMPTY_SHA256

from conftest import CountingFile


def _md5(data: bytes) -> str:
    return base64.b64encode(hashlib.md5(data).digest()).decode()


class TestParseByteRange:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("0-99", (0, 99)),
            ("bytes=0-99", (0, 99)),
            ("100-", (100, None)),
            ("5-5", (5, 5)),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_byte_range(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "-5", "10-2", "1-2-3", "bytes=x-1"])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError, match="Bad bytes"):
            parse_byte_range(value)


class TestOptionConflicts:
    """Conflicting body options are rejected before any file is read."""

    def test_md5_provided_and_computed(self, sample_file):
        path, _ = sample_file
        with pytest.raises(ConfigurationError, match="already provided"):
            load_body(BodyOptions(file=path, content_md5="abc", compute_content_md5=True))

    def test_conflict_detected_before_io(self, tmp_path):
        """The file does not exist, yet the conflict is reported first."""
        with pytest.raises(ConfigurationError):
            load_body(
                BodyOptions(
                    filestream=tmp_path / "missing", content_md5="abc", compute_content_md5=True
                )
            )

    def test_file_and_filestream(self, sample_file):
        path, _ = sample_file
        with pytest.raises(ConfigurationError, match="mutually exclusive"):
            load_body(BodyOptions(file=path, filestream=path))

    def test_no_source(self):
        with pytest.raises(ConfigurationError):
            load_body(BodyOptions())

    def test_bytes_requires_file(self, sample_file):
        path, _ = sample_file
        with pytest.raises(ConfigurationError, match="bytes"):
            load_body(BodyOptions(filestream=path, bytes_range="0-9"))


class TestBufferedFile:
    def test_whole_file(self, sample_file):
        path, data = sample_file
        prepared = load_body(BodyOptions(file=path))
        assert prepared.body == BufferedBody(data)
        assert prepared.content_md5 is None
        assert prepared.prep_millis >= 0

    def test_byte_range_inclusive(self, sample_file):
        path, data = sample_file
        prepared = load_body(BodyOptions(file=path, bytes_range="10-19"))
        assert prepared.body.data == data[10:20]

    def test_open_byte_range(self, sample_file):
        path, data = sample_file
        prepared = load_body(BodyOptions(file=path, bytes_range="1000-"))
        assert prepared.body.data == data[1000:]

    def test_computed_md5_covers_range(self, sample_file):
        path, data = sample_file
        prepared = load_body(
            BodyOptions(file=path, bytes_range="0-9", compute_content_md5=True)
        )
        assert prepared.content_md5 == _md5(data[:10])

    def test_provided_md5_passed_through(self, sample_file):
        path, _ = sample_file
        prepared = load_body(BodyOptions(file=path, content_md5="given=="))
        assert prepared.content_md5 == "given=="

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_body(BodyOptions(file=tmp_path / "missing"))

    def test_directory_rejected(self, tmp_path):
        """A non-regular file is a configuration error, not a raw OSError."""
        with pytest.raises(ConfigurationError, match="Not a regular file"):
            load_body(BodyOptions(file=tmp_path))

    def test_directory_rejected_for_stream(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Not a regular file"):
            load_body(BodyOptions(filestream=tmp_path))


class TestStreamedFile:
    """Streamed bodies: one read pass per digest, transmission opens its own handle."""

    def test_hash_and_length(self, sample_file):
        path, data = sample_file
        prepared = load_body(BodyOptions(filestream=path), file_factory=CountingFile)
        body = prepared.body
        assert isinstance(body, StreamedBody)
        assert body.length == len(data)
        assert body.content_sha256 == hashlib.sha256(data).hexdigest()
        assert body.content_md5 is None
        assert body.file.opens == 1

    def test_md5_adds_one_pass(self, sample_file):
        path, data = sample_file
        prepared = load_body(
            BodyOptions(filestream=path, compute_content_md5=True), file_factory=CountingFile
        )
        assert prepared.body.file.opens == 2
        assert prepared.content_md5 == _md5(data)
        assert prepared.body.content_md5 == prepared.content_md5

    def test_unsigned_skips_hash_pass(self, sample_file):
        path, _ = sample_file
        prepared = load_body(
            BodyOptions(filestream=path), unsigned_payload=True, file_factory=CountingFile
        )
        assert prepared.body.content_sha256 == UNSIGNED_PAYLOAD
        assert prepared.body.file.opens == 0

    async def test_transmitted_bytes_match_digests(self, sample_file):
        path, data = sample_file
        prepared = load_body(BodyOptions(filestream=path, compute_content_md5=True))
        sent = b"".join([chunk async for chunk in prepared.body.stream()])
        assert sent == data
        assert _md5(sent) == prepared.content_md5
        assert hashlib.sha256(sent).hexdigest() == prepared.body.content_sha256

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_body(BodyOptions(filestream=tmp_path / "missing"))


class TestContentSha256:
    def test_empty(self):
        assert content_sha256(EMPTY_BODY) == EMPTY_SHA256

    def test_buffered(self):
        assert content_sha256(BufferedBody(b"abc")) == hashlib.sha256(b"abc").hexdigest()

    def test_unsigned(self):
        assert content_sha256(BufferedBody(b"abc"), unsigned_payload=True) == UNSIGNED_PAYLOAD
        assert content_sha256(EMPTY_BODY, unsigned_payload=True) == UNSIGNED_PAYLOAD

    def test_streamed_uses_precomputed(self, sample_file):
        path, _ = sample_file
        body = StreamedBody(file=LocalFile(path), length=3, content_sha256="precomputed")
        assert content_sha256(body) == "precomputed"


class TestResolveContentMd5:
    def test_empty_body(self):
        assert resolve_content_md5(EMPTY_BODY) == _md5(b"")

    def test_stream_without_md5(self, sample_file):
        path, _ = sample_file
        body = StreamedBody(file=LocalFile(path), length=3, content_sha256="x")
        with pytest.raises(ConfigurationError, match="stream source"):
            resolve_content_md5(body)

    def test_buffered_repr_hides_payload(self):
        assert "secret" not in repr(BufferedBody(b"secret"))
