"""Provides exceptions occurring with the session store."""


class InvalidToken(ValueError):
    """Session cookie is malformed, forged, or otherwise invalid."""


class ExpiredToken(InvalidToken):
    """Session cookie has expired."""


class UnknownSession(RuntimeError):
    """Failed to locate a session in the session store."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""
