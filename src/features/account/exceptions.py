"""Account-related exceptions."""


class AccountOperationError(Exception):
    """A credential or account update was rejected.

    Carries every human-readable reason so callers can surface them as-is.
    """

    def __init__(self, errors: str | list[str]):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


class EmailAlreadyExists(AccountOperationError):
    """Raised when the normalized email is already registered."""

    def __init__(self, email: str):
        super().__init__(f"Email '{email}' is already taken.")


class WeakPassword(AccountOperationError):
    """Raised when a password violates the password policy."""


class IncorrectPassword(AccountOperationError):
    """Raised when the current password does not match."""

    def __init__(self):
        super().__init__("Incorrect password.")


class NotInRole(AccountOperationError):
    """Raised when removing a role the account does not have."""

    def __init__(self, role: str):
        super().__init__(f"Account is not in role '{role}'.")
