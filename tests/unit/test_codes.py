"""Tests for one-time code input rules."""

from __future__ import annotations

import pytest

from stepup_gate.exceptions import InvalidCodeFormatError
from stepup_gate.mfa.codes import (
    format_error,
    is_well_formed,
    normalize_input,
    validate_code,
)
from stepup_gate.mfa.models import VerificationMode

TOTP = VerificationMode.TOTP
BACKUP = VerificationMode.BACKUP_CODE


class TestNormalizeInput:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("123456", "123456"),
            ("123 456", "123456"),
            ("12a3-45b6", "123456"),
            ("12345678", "123456"),
            ("abc", ""),
        ],
    )
    def test_totp_keeps_digits_only(self, raw: str, expected: str) -> None:
        assert normalize_input(raw, TOTP) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("abcd-efgh", "ABCD-EFGH"),
            ("  ABCD-EFGH ", "ABCD-EFGH"),
            ("abcd-efgh-ijkl", "ABCD-EFGH"),
        ],
    )
    def test_backup_code_is_upper_cased(self, raw: str, expected: str) -> None:
        assert normalize_input(raw, BACKUP) == expected


class TestValidateCode:
    def test_accepts_six_digits(self) -> None:
        assert validate_code("123456", TOTP) == "123456"

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "12345a"])
    def test_rejects_malformed_totp(self, code: str) -> None:
        with pytest.raises(InvalidCodeFormatError, match="Enter a 6-digit code"):
            validate_code(code, TOTP)

    def test_accepts_nine_character_backup_code(self) -> None:
        assert validate_code("ABCD-EFGH", BACKUP) == "ABCD-EFGH"

    @pytest.mark.parametrize("code", ["", "ABCD-EFG", "ABCDEFGH"])
    def test_rejects_wrong_length_backup_code(self, code: str) -> None:
        with pytest.raises(InvalidCodeFormatError, match="9-character"):
            validate_code(code, BACKUP)

    def test_is_well_formed_matches_mode(self) -> None:
        assert is_well_formed("123456", TOTP)
        assert not is_well_formed("123456", BACKUP)
        assert is_well_formed("123456789", BACKUP)

    def test_format_errors(self) -> None:
        assert format_error(TOTP) == "Enter a 6-digit code"
        assert format_error(BACKUP) == "Enter a 9-character backup code"
