"""Tests for caller-side input validation."""

import pytest

from r2call.errors import ConfigurationError
from r2call.validation import (
    validate_bucket_name,
    validate_max_keys,
    validate_object_key,
    validate_part_number,
)


class TestValidateBucketName:
    """Tests for validate_bucket_name()."""

    # -- Valid names ----------------------------------------------------------

    def test_valid_simple(self):
        """A simple lowercase alphanumeric name passes."""
        validate_bucket_name("my-bucket")

    def test_valid_three_chars(self):
        """Minimum length (3 chars) is accepted."""
        validate_bucket_name("abc")

    def test_valid_63_chars(self):
        """Maximum length (63 chars) is accepted."""
        validate_bucket_name("a" * 63)

    def test_valid_with_dots(self):
        """Names with single dots are accepted."""
        validate_bucket_name("my.bucket.name")

    # -- Invalid names --------------------------------------------------------

    @pytest.mark.parametrize(
        "name",
        [
            "ab",
            "a" * 64,
            "MyBucket",
            "my_bucket",
            "-bucket",
            "bucket-",
            "my..bucket",
            "192.168.1.1",
            "xn--bucket",
        ],
    )
    def test_invalid(self, name):
        """Names breaking any naming rule raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Bad bucket name"):
            validate_bucket_name(name)


class TestValidateObjectKey:
    """Tests for validate_object_key()."""

    def test_valid(self):
        validate_object_key("dir/sub/file name.txt")

    def test_max_length(self):
        """1024 bytes is the limit."""
        validate_object_key("a" * 1024)

    def test_too_long(self):
        with pytest.raises(ConfigurationError):
            validate_object_key("a" * 1025)

    def test_multibyte_counted_in_bytes(self):
        """Length is measured in UTF-8 bytes, not characters."""
        with pytest.raises(ConfigurationError):
            validate_object_key("é" * 513)

    def test_empty(self):
        with pytest.raises(ConfigurationError):
            validate_object_key("")


class TestValidateMaxKeys:
    """Tests for validate_max_keys()."""

    def test_valid(self):
        assert validate_max_keys(1) == 1
        assert validate_max_keys("1000") == 1000

    @pytest.mark.parametrize("value", [0, 1001, -1, "abc", None])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            validate_max_keys(value)


class TestValidatePartNumber:
    """Tests for validate_part_number()."""

    def test_bounds(self):
        assert validate_part_number(1) == 1
        assert validate_part_number(10000) == 10000

    @pytest.mark.parametrize("value", [0, 10001, True, "3", 1.5])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            validate_part_number(value)
