"""Tests for content digests and local file passes."""

import base64
import hashlib

import pytest

from r2call.errors import ConfigurationError
from r2call.files import CHUNK_SIZE, LocalFile
from r2call.hashing import (
    EMPTY_SHA256,
    compute_streaming_md5,
    compute_streaming_sha256,
    md5_base64,
    sha256_hex,
)

from conftest import CountingFile


class TestInMemoryDigests:
    def test_empty_sha256(self):
        assert sha256_hex(b"") == EMPTY_SHA256

    def test_md5_base64(self):
        assert md5_base64(b"hello") == "XUFAKrxLKna5cZ2REBfFkg=="


class TestStreamingDigests:
    """Tests for compute_streaming_sha256() and compute_streaming_md5()."""

    def test_sha256_matches_in_memory(self, sample_file):
        path, data = sample_file
        assert compute_streaming_sha256(LocalFile(path)) == hashlib.sha256(data).hexdigest()

    def test_md5_matches_in_memory(self, sample_file):
        path, data = sample_file
        expected = base64.b64encode(hashlib.md5(data).digest()).decode()
        assert compute_streaming_md5(LocalFile(path)) == expected

    def test_length_caps_the_pass(self, sample_file):
        path, data = sample_file
        assert compute_streaming_sha256(LocalFile(path), 10) == sha256_hex(data[:10])

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert compute_streaming_sha256(LocalFile(path)) == EMPTY_SHA256

    def test_each_pass_opens_its_own_handle(self, sample_file):
        path, _ = sample_file
        source = CountingFile(path)
        compute_streaming_sha256(source)
        compute_streaming_md5(source)
        assert source.opens == 2

    def test_missing_file_propagates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            compute_streaming_sha256(LocalFile(tmp_path / "missing"))


class TestLocalFile:
    def test_size(self, sample_file):
        path, data = sample_file
        assert LocalFile(path).size() == len(data)

    def test_size_of_directory_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            LocalFile(tmp_path).size()

    def test_size_does_not_open(self, sample_file):
        path, _ = sample_file
        source = CountingFile(path)
        source.size()
        assert source.opens == 0

    def test_read_range(self, sample_file):
        path, data = sample_file
        assert LocalFile(path).read_range(10, 19) == data[10:20]

    def test_read_open_range(self, sample_file):
        path, data = sample_file
        assert LocalFile(path).read_range(100) == data[100:]

    def test_read_past_eof(self, sample_file):
        path, data = sample_file
        assert LocalFile(path).read_range(len(data) + 5, len(data) + 10) == b""

    async def test_iter_chunks(self, sample_file):
        path, data = sample_file
        chunks = [chunk async for chunk in LocalFile(path).iter_chunks()]
        assert b"".join(chunks) == data
        assert all(len(chunk) <= CHUNK_SIZE for chunk in chunks)

    async def test_iter_chunks_capped(self, sample_file):
        path, data = sample_file
        chunks = [chunk async for chunk in LocalFile(path).iter_chunks(CHUNK_SIZE + 7)]
        assert b"".join(chunks) == data[: CHUNK_SIZE + 7]

    async def test_iter_chunks_opens_lazily(self, sample_file):
        path, _ = sample_file
        source = CountingFile(path)
        stream = source.iter_chunks(10)
        assert source.opens == 0
        async for _ in stream:
            pass
        assert source.opens == 1
