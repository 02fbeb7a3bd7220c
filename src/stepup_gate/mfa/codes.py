"""Client-side rules for one-time code input.

These checks only fail fast; the backend verify call is authoritative.
"""

from __future__ import annotations

import re

from ..exceptions import InvalidCodeFormatError
from .models import BACKUP_CODE_LENGTH, TOTP_CODE_LENGTH, VerificationMode

_NON_DIGITS = re.compile(r"\D")


def normalize_input(raw: str, mode: VerificationMode) -> str:
    """Normalize keyboard input the way the code field does.

    TOTP input keeps digits only; backup-code input is upper-cased so that
    ``abcd-efgh`` and ``ABCD-EFGH`` are the same code. Input is truncated to
    the mode's maximum length.
    """
    if mode is VerificationMode.TOTP:
        value = _NON_DIGITS.sub("", raw)
    else:
        value = raw.strip().upper()
    return value[: mode.code_length]


def format_error(mode: VerificationMode) -> str:
    if mode is VerificationMode.TOTP:
        return f"Enter a {TOTP_CODE_LENGTH}-digit code"
    return f"Enter a {BACKUP_CODE_LENGTH}-character backup code"


def is_well_formed(code: str, mode: VerificationMode) -> bool:
    if len(code) != mode.code_length:
        return False
    if mode is VerificationMode.TOTP:
        return code.isdigit()
    return True


def validate_code(code: str, mode: VerificationMode) -> str:
    """Check a code before submission.

    Args:
        code: Normalized code.
        mode: TOTP (exactly 6 digits) or backup code (exactly 9 characters).

    Returns:
        The code, unchanged.

    Raises:
        InvalidCodeFormatError: If the length or characters are wrong.
    """
    if not is_well_formed(code, mode):
        raise InvalidCodeFormatError(format_error(mode))
    return code


__all__: list[str] = [
    "normalize_input",
    "format_error",
    "is_well_formed",
    "validate_code",
]
