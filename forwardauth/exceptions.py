"""Exceptions raised by the authentication and authorization pipeline."""


class DirectoryUnavailable(RuntimeError):
    """Could not connect, bind, or search against the directory."""


class InvalidCredentials(RuntimeError):
    """
    The supplied credentials could not be validated.

    Covers unknown users, wrong passwords, and directory errors during login;
    the browser is never told which one occurred.
    """


class ConfigurationError(RuntimeError):
    """Raised when a required configuration parameter is missing."""


class PreconditionViolation(AssertionError):
    """An internal function was called with invalid arguments (a bug)."""
