"""Exceptions raised by the session store and its components."""

from typing import Any, List, Optional


class ConfigurationError(RuntimeError):
    """Raised when the store or one of its codecs is misconfigured."""


class IdentifierDecodeError(RuntimeError):
    """
    A session cookie could not be verified.

    The cookie may be malformed, signed with an unknown key, issued for a
    different cookie name, or too old. When raised while loading a session,
    :attr:`session` holds a new, empty session that remains usable.
    """

    def __init__(self, message: str, errors: Optional[List[Exception]] = None,
                 session: Optional[Any] = None) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.session = session


class ExpiredIdentifier(IdentifierDecodeError):
    """The cookie is authentic, but older than the configured max-age."""


class IdentifierEncodeError(RuntimeError):
    """A session identifier could not be encoded as a cookie value."""


class SerializationError(RuntimeError):
    """Session values could not be serialized or deserialized."""


class PayloadTooLargeError(RuntimeError):
    """The serialized session exceeds the configured maximum length."""


class BackendError(RuntimeError):
    """A call to the key-value store failed."""


class InvalidLease(BackendError):
    """A lease was requested with a non-positive TTL."""


class LeaseGrantFailed(BackendError):
    """Failed to create a lease in the key-value store."""


class LeaseNotFound(BackendError):
    """The requested lease does not exist, or has already expired."""


class SessionWriteFailed(BackendError):
    """Failed to write a session record to the key-value store."""


class SessionReadFailed(BackendError):
    """Failed to read a session record from the key-value store."""


class SessionDeletionFailed(BackendError):
    """Failed to delete a session record from the key-value store."""
