"""Unit tests for activation and completion code generation."""

import string

import pytest

from questhub.codes import (
    COMPLETION_CODE_CHARSET,
    COMPLETION_CODE_LENGTH,
    generate_activation_code,
    generate_completion_code,
    is_valid_activation_code,
    normalize_completion_code,
)


class TestActivationCodes:
    """Test 6-digit activation codes."""

    def test_code_is_6_digits(self):
        code = generate_activation_code()
        assert len(code) == 6
        assert code.isdigit()

    def test_generated_codes_are_valid(self):
        assert all(is_valid_activation_code(generate_activation_code()) for _ in range(200))

    @pytest.mark.parametrize("code", ["700697", "000000", "123456"])
    def test_valid_codes(self, code):
        assert is_valid_activation_code(code) is True

    @pytest.mark.parametrize("code", ["", None, "12345", "1234567", "12a456", " 123456", "１２３４５６"])
    def test_invalid_codes(self, code):
        assert is_valid_activation_code(code) is False


class TestCompletionCodes:
    """Test QR completion codes."""

    def test_code_length_and_charset(self):
        code = generate_completion_code()
        assert len(code) == COMPLETION_CODE_LENGTH == 12
        assert all(c in COMPLETION_CODE_CHARSET for c in code)

    def test_charset_is_uppercase_alnum(self):
        assert COMPLETION_CODE_CHARSET == string.ascii_uppercase + string.digits

    def test_codes_are_unique(self):
        codes = {generate_completion_code() for _ in range(1000)}
        assert len(codes) == 1000

    def test_normalize_strips_and_uppercases(self):
        assert normalize_completion_code("  qrcode12ab ") == "QRCODE12AB"
