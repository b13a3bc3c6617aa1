"""One-time code format validation."""

OTP_LENGTH = 6


def validate_otp_format(code: str) -> str:
    """Validate that a one-time code is exactly six digits.

    Raises:
        ValueError: If the code is empty, the wrong length, or not numeric

    """
    if not code:
        raise ValueError("OTP code is required")
    if len(code) != OTP_LENGTH:
        raise ValueError(f"OTP code must be exactly {OTP_LENGTH} digits")
    if not code.isascii() or not code.isdigit():
        raise ValueError("OTP code must contain only digits")
    return code
