"""Tests for bucket/key URL construction."""

import pytest

from r2call.addressing import UrlStyle, compute_bucket_url, uri_encode

ORIGIN = "https://acct.r2.cloudflarestorage.com"


class TestUriEncode:
    def test_unreserved_untouched(self):
        assert uri_encode("AZaz09-_.~") == "AZaz09-_.~"

    def test_space_is_percent20(self):
        assert uri_encode("a b") == "a%20b"

    def test_slash(self):
        assert uri_encode("a/b") == "a%2Fb"
        assert uri_encode("a/b", encode_slash=False) == "a/b"

    def test_reserved_characters(self):
        assert uri_encode("a+b=c&d") == "a%2Bb%3Dc%26d"

    def test_unicode(self):
        assert uri_encode("é") == "%C3%A9"


class TestPathStyle:
    def test_bucket_only(self):
        assert str(compute_bucket_url(ORIGIN, "bucket")) == f"{ORIGIN}/bucket"

    def test_key_keeps_slashes(self):
        url = compute_bucket_url(ORIGIN, "bucket", "dir/a b.txt")
        assert str(url) == f"{ORIGIN}/bucket/dir/a%20b.txt"

    def test_key_slashes_encoded(self):
        url = compute_bucket_url(ORIGIN, "bucket", "dir/file", preserve_slashes=False)
        assert url.raw_path == b"/bucket/dir%2Ffile"

    def test_port_preserved(self):
        url = compute_bucket_url("http://localhost:9000", "bucket", "key")
        assert str(url) == "http://localhost:9000/bucket/key"

    def test_origin_base_path(self):
        url = compute_bucket_url("https://proxy.example.com/s3/", "bucket", "key")
        assert str(url) == "https://proxy.example.com/s3/bucket/key"

    def test_style_from_string(self):
        url = compute_bucket_url(ORIGIN, "bucket", "key", url_style="path")
        assert url.host == "acct.r2.cloudflarestorage.com"


class TestVhostStyle:
    def test_bucket_in_host(self):
        url = compute_bucket_url(ORIGIN, "bucket", "dir/key", url_style=UrlStyle.VHOST)
        assert url.host == "bucket.acct.r2.cloudflarestorage.com"
        assert url.raw_path == b"/dir/key"

    def test_bucket_only_is_root(self):
        url = compute_bucket_url(ORIGIN, "bucket", url_style=UrlStyle.VHOST)
        assert str(url) == "https://bucket.acct.r2.cloudflarestorage.com/"

    def test_unknown_style_rejected(self):
        with pytest.raises(ValueError):
            compute_bucket_url(ORIGIN, "bucket", url_style="virtual")


class TestQuery:
    def test_merged_as_strings(self):
        url = compute_bucket_url(ORIGIN, "bucket", query={"list-type": 2, "prefix": "a/"})
        assert url.params["list-type"] == "2"
        assert url.params["prefix"] == "a/"
        assert url.raw_path.startswith(b"/bucket?")

    def test_valueless_parameter(self):
        url = compute_bucket_url(ORIGIN, "bucket", query={"delete": ""})
        assert "delete" in url.params


class TestDotSegments:
    """Keys made of "." or ".." segments must not be normalized away."""

    @pytest.mark.parametrize(
        "key,raw_path",
        [
            ("a/../b", b"/bucket/a/%2E%2E/b"),
            ("./x", b"/bucket/%2E/x"),
            ("..", b"/bucket/%2E%2E"),
            ("dir/..", b"/bucket/dir/%2E%2E"),
            ("a.b/..c/d..", b"/bucket/a.b/..c/d.."),
        ],
    )
    def test_path_style(self, key, raw_path):
        assert compute_bucket_url(ORIGIN, "bucket", key).raw_path == raw_path

    def test_vhost_cannot_escape_bucket(self):
        url = compute_bucket_url(
            ORIGIN, "bucket", "../other-bucket/secret", url_style=UrlStyle.VHOST
        )
        assert url.host == "bucket.acct.r2.cloudflarestorage.com"
        assert url.raw_path == b"/%2E%2E/other-bucket/secret"

    def test_encoded_slashes_keep_single_segment(self):
        url = compute_bucket_url(ORIGIN, "bucket", "..", preserve_slashes=False)
        assert url.raw_path == b"/bucket/%2E%2E"


class TestStyleConsistency:
    """Both styles encode the key identically; only the bucket placement differs."""

    KEY = "d/a b+é~.txt"

    def test_same_key_encoding(self):
        path_url = compute_bucket_url(ORIGIN, "bucket", self.KEY, url_style=UrlStyle.PATH)
        vhost_url = compute_bucket_url(ORIGIN, "bucket", self.KEY, url_style=UrlStyle.VHOST)
        assert path_url.raw_path == b"/bucket" + vhost_url.raw_path
        assert vhost_url.raw_path == b"/d/a%20b%2B%C3%A9~.txt"
        assert path_url.host == "acct.r2.cloudflarestorage.com"
        assert vhost_url.host == "bucket.acct.r2.cloudflarestorage.com"

    @pytest.mark.parametrize("style", list(UrlStyle))
    def test_repeatable(self, style):
        first = compute_bucket_url(ORIGIN, "bucket", self.KEY, url_style=style)
        second = compute_bucket_url(ORIGIN, "bucket", self.KEY, url_style=style)
        assert first == second
