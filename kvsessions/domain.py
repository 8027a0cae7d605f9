"""Domain objects for sessions and their cookie options."""

from typing import Any, Dict, Optional, TYPE_CHECKING
from dataclasses import dataclass, replace

if TYPE_CHECKING:
    from werkzeug.wrappers import Request, Response
    from .store import SessionStore

DEFAULT_MAX_AGE = 86400 * 30
"""Default lifetime, in seconds, of session cookies and their records."""


@dataclass
class Options:
    """Cookie attributes and lifetime for a :class:`.Session`."""

    path: str = '/'
    """Cookie path."""

    domain: Optional[str] = None
    """Cookie domain. If ``None``, the cookie is host-only."""

    max_age: int = DEFAULT_MAX_AGE
    """
    Lifetime of the session, in seconds.

    A value greater than zero sets both the cookie lifetime and the lease on
    the stored record. Saving a session with ``max_age <= 0`` deletes it.
    """

    secure: bool = False
    """Whether the cookie is only sent over HTTPS."""

    http_only: bool = False
    """Whether the cookie is hidden from client-side scripts."""

    same_site: Optional[str] = None
    """``SameSite`` attribute: ``'Strict'``, ``'Lax'``, ``'None'`` or unset."""

    def copy(self) -> 'Options':
        """Make an independent copy of these options."""
        return replace(self)


class Session(object):
    """
    A named session attached to a single request.

    Values can be any picklable object; with the JSON serializer, keys must be
    strings and values JSON-encodable. A session must not be shared across
    concurrent requests.
    """

    def __init__(self, store: 'SessionStore', name: str,
                 options: Optional[Options] = None) -> None:
        self.store = store
        self.name = name
        self.session_id = ''
        self.values: Dict[Any, Any] = {}
        self.options = options if options is not None else Options()
        self.is_new = True

    def save(self, request: 'Request', response: 'Response') -> None:
        """Save this session with the store that created it."""
        self.store.save(request, response, self)

    def __repr__(self) -> str:
        return (f'<Session name={self.name!r} id={self.session_id!r}'
                f' new={self.is_new}>')
