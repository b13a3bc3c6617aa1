"""Password validation functions."""

import re

MIN_PASSWORD_LENGTH = 8

_SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>?/]")


def password_policy_errors(password: str) -> list[str]:
    """Return every password policy violation, in a stable order.

    Requirements:
    - At least 8 characters
    - At least one uppercase letter (A-Z)
    - At least one lowercase letter (a-z)
    - At least one digit (0-9)
    - At least one special character

    Examples:
        >>> password_policy_errors("P@ssw0rd1")
        []
        >>> password_policy_errors("Passw0rd")
        ['Password must contain at least one special character']

    """
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(c.isupper() for c in password):
        errors.append("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        errors.append("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        errors.append("Password must contain at least one digit")
    if not _SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain at least one special character")
    return errors


def validate_password_strength(password: str) -> str:
    """Validate password strength requirements.

    Args:
        password: Password string to validate

    Returns:
        The validated password string

    Raises:
        ValueError: With the first violated requirement

    """
    errors = password_policy_errors(password)
    if errors:
        raise ValueError(errors[0])
    return password
