"""
Session store backed by a lease-based key-value store.

A :class:`SessionStore` reconstructs sessions from cookies on incoming
requests and persists them on outgoing responses. The cookie carries only a
signed session ID (see :mod:`.cookies`); the session values are serialized
(see :mod:`.serializers`) and stored under ``<prefix><session ID>`` with a
lease that expires with the session (see :mod:`.backend`).
"""

from base64 import b32encode
from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Dict, Mapping, Optional, List

from pytz import UTC
from flask import Flask, current_app, g, has_app_context
from werkzeug.wrappers import Request, Response

from .backend import LeaseStore, Client, get_redis
from .cookies import codecs_from_pairs, decode_multi, encode_multi, \
    generate_random_key, Key
from .domain import Options, Session, DEFAULT_MAX_AGE
from .exceptions import IdentifierDecodeError, SerializationError, \
    PayloadTooLargeError, ConfigurationError
from .serializers import SessionSerializer, PickleSerializer, get_serializer
from . import config as default_config
from . import logging

logger = logging.getLogger(__name__)

REGISTRY_KEY = 'kvsessions.registry'
"""Key in the WSGI environ where sessions loaded for a request are kept."""


def _generate_session_id() -> str:
    """Generate an alphanumeric session ID."""
    return b32encode(generate_random_key(32)).decode('ascii').rstrip('=')


class SessionStore(object):
    """
    Stores sessions in Redis, and their signed IDs in cookies.

    .. code-block:: python

       store = SessionStore(redis.Redis(), hash_key, block_key)
       session = store.get(request, 'session')
       session.values['foo'] = 'bar'
       session.save(request, response)

    """

    def __init__(self, client: Client, *key_pairs: Optional[Key],
                 key_prefix: str = 'session_', max_length: int = 4096,
                 default_max_age: int = 60 * 20,
                 max_age: int = DEFAULT_MAX_AGE,
                 serializer: Optional[SessionSerializer] = None) -> None:
        """
        Configure the store.

        Parameters
        ----------
        client : :class:`redis.Redis` or :class:`redis.cluster.RedisCluster`
        key_pairs : bytes or str
            Hash and block keys, as accepted by
            :func:`.cookies.codecs_from_pairs`.
        key_prefix : str
            Prepended to session IDs to build store keys.
        max_length : int
            Maximum size of a serialized session, in bytes. Zero means no
            limit.
        default_max_age : int
            Lease TTL, in seconds, for sessions with ``max_age`` of zero.
        max_age : int
            Default cookie and lease lifetime, in seconds, for new sessions.
            This is also the maximum age of cookies accepted when decoding.
        serializer : :class:`.SessionSerializer`
            Defaults to :class:`.PickleSerializer`.

        """
        self.backend = LeaseStore(client, key_prefix)
        self.codecs = codecs_from_pairs(*key_pairs, max_age=max_age)
        self.options = Options(path='/', max_age=max_age)
        self.default_max_age = default_max_age
        self.max_length = max_length
        self.serializer = serializer or PickleSerializer()

    @property
    def key_prefix(self) -> str:
        """Prefix of the keys under which sessions are stored."""
        return self.backend.key_prefix

    def set_max_length(self, max_length: int) -> None:
        """
        Restrict the size of serialized sessions to ``max_length`` bytes.

        Zero removes the limit; use with caution. Negative values are
        ignored.
        """
        if max_length >= 0:
            self.max_length = max_length

    def set_key_prefix(self, prefix: str) -> None:
        """Set the prefix of the keys under which sessions are stored."""
        self.backend.key_prefix = prefix

    def set_serializer(self, serializer: SessionSerializer) -> None:
        """Set the serializer used for session values."""
        self.serializer = serializer

    def set_max_age(self, max_age: int) -> None:
        """
        Set the maximum age, in seconds, of sessions.

        This applies both to the cookie and the stored record of new
        sessions, and to the age of cookies accepted by every codec. Always
        use this method rather than changing either one alone.

        To end a single session, set its ``options.max_age`` to ``-1`` and
        save it instead.
        """
        self.options.max_age = max_age
        for codec in self.codecs:
            codec.set_max_age(max_age)

    def set_options(self, options: Options) -> None:
        """Set the default options of new sessions."""
        self.options = options.copy()
        self.set_max_age(options.max_age)

    def close(self) -> None:
        """Close the connection to the key-value store."""
        self.backend.close()

    def get(self, request: Request, name: str) -> Session:
        """
        Get the session ``name`` for this request.

        The session is loaded with :meth:`new` the first time it is requested,
        and the same instance is returned thereafter.

        Raises
        ------
        :class:`IdentifierDecodeError`
            Raised on first access if the cookie could not be verified. The
            new session is available on the exception, and is returned by
            later calls.

        """
        registry = get_registry(request)
        if name in registry:
            return registry[name]
        try:
            session = self.new(request, name)
        except IdentifierDecodeError as e:
            registry[name] = e.session
            raise
        registry[name] = session
        return session

    def new(self, request: Request, name: str) -> Session:
        """
        Load the session ``name`` from the request cookies.

        If there is no cookie, no stored record, or the record cannot be
        deserialized, a new empty session is returned.

        Raises
        ------
        :class:`IdentifierDecodeError`
            Raised if the cookie could not be verified. The new, empty session
            is available as ``session`` on the exception.
        :class:`.BackendError`
            Raised if the key-value store could not be read.

        """
        session = Session(self, name, self.options.copy())
        token = request.cookies.get(name)
        if not token:
            return session
        try:
            session.session_id = decode_multi(name, token, self.codecs)
        except IdentifierDecodeError as e:
            logger.debug('Could not decode cookie %s: %s', name, e)
            e.session = session
            raise
        session.is_new = not self._load(session)
        return session

    def save(self, request: Request, response: Response,
             session: Session) -> None:
        """
        Save ``session`` and set its cookie on ``response``.

        A session with ``options.max_age <= 0`` is deleted instead: its
        record is removed, its cookie is expired, and its values are cleared.

        Raises
        ------
        :class:`.SerializationError`
        :class:`.PayloadTooLargeError`
            Raised before any call to the store if the serialized session is
            larger than :attr:`max_length`.
        :class:`.BackendError`

        """
        if session.options.max_age <= 0:
            self._delete(session)
            options = session.options.copy()
            options.max_age = -1
            self._set_cookie(response, session.name, '', options)
            session.values.clear()
            return

        if not session.session_id:
            session.session_id = _generate_session_id()
        self._save(session)
        encoded = encode_multi(session.name, session.session_id, self.codecs)
        self._set_cookie(response, session.name, encoded, session.options)

    def delete(self, request: Request, response: Response,
               session: Session) -> None:
        """
        Delete ``session`` from the store, and expire its cookie.

        This works regardless of ``session.options.max_age``. Setting
        ``max_age`` to ``-1`` and calling :meth:`save` is equivalent.
        """
        self._delete(session)
        options = session.options.copy()
        options.max_age = -1
        self._set_cookie(response, session.name, '', options)
        session.values.clear()

    def save_all(self, request: Request, response: Response) -> None:
        """
        Save every session loaded for this request.

        New sessions without values are skipped.
        """
        for session in get_registry(request).values():
            if session.is_new and not session.values:
                continue
            session.store.save(request, response, session)

    def _save(self, session: Session) -> None:
        data = self.serializer.serialize(session.values)
        if self.max_length != 0 and len(data) > self.max_length:
            raise PayloadTooLargeError(
                f'Session is {len(data)} bytes; the limit is {self.max_length}'
            )
        age = session.options.max_age
        if age == 0:
            age = self.default_max_age
        lease_id = self.backend.grant_lease(age)
        self.backend.put(session.session_id, data, lease_id)

    def _load(self, session: Session) -> bool:
        """Read ``session`` values from the store; ``False`` if absent."""
        data = self.backend.get(session.session_id)
        if data is None:
            logger.debug('No such session: %s', session.session_id)
            return False
        try:
            self.serializer.deserialize(data, session.values)
        except SerializationError as e:
            logger.error('Could not deserialize session %s: %s',
                         session.session_id, e)
            session.values.clear()
            return False
        return True

    def _delete(self, session: Session) -> None:
        if session.session_id:
            self.backend.delete(session.session_id)

    def _set_cookie(self, response: Response, name: str, value: str,
                    options: Options) -> None:
        max_age: Optional[int] = None
        expires: Optional[datetime] = None
        if options.max_age > 0:
            max_age = options.max_age
            expires = datetime.now(tz=UTC) + timedelta(seconds=max_age)
        elif options.max_age < 0:
            max_age = 0
            expires = datetime.fromtimestamp(0, tz=UTC)
        response.set_cookie(name, value, max_age=max_age, expires=expires,
                            path=options.path, domain=options.domain,
                            secure=options.secure, httponly=options.http_only,
                            samesite=options.same_site)


def get_registry(request: Request) -> Dict[str, Session]:
    """Get the sessions loaded for ``request``, by name."""
    registry: Dict[str, Session] = \
        request.environ.setdefault(REGISTRY_KEY, {})
    return registry


def parse_key_pairs(value: Any) -> List[Optional[str]]:
    """
    Parse ``SESSION_KEY_PAIRS`` into a flat list of hash and block keys.

    Accepts either a list of keys, or a comma-separated string of
    ``hash_key[:block_key]`` pairs.
    """
    if not isinstance(value, str):
        return list(value)
    keys: List[Optional[str]] = []
    for pair in value.split(','):
        pair = pair.strip()
        if not pair:
            continue
        hash_key, _, block_key = pair.partition(':')
        keys.extend([hash_key, block_key or None])
    return keys


def _get_config(app: Optional[Flask] = None) -> Mapping[str, Any]:
    if app is not None:
        return app.config
    if has_app_context():
        return current_app.config
    return {key: getattr(default_config, key) for key in dir(default_config)
            if key.isupper()}


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('REDIS_HOST', default_config.REDIS_HOST)
    app.config.setdefault('REDIS_PORT', default_config.REDIS_PORT)
    app.config.setdefault('REDIS_DATABASE', default_config.REDIS_DATABASE)
    app.config.setdefault('REDIS_CLUSTER', default_config.REDIS_CLUSTER)
    app.config.setdefault('REDIS_SOCKET_TIMEOUT',
                          default_config.REDIS_SOCKET_TIMEOUT)
    app.config.setdefault('SESSION_STORE_COOKIE_NAME',
                          default_config.SESSION_STORE_COOKIE_NAME)
    app.config.setdefault('SESSION_KEY_PAIRS',
                          default_config.SESSION_KEY_PAIRS)
    app.config.setdefault('SESSION_KEY_PREFIX',
                          default_config.SESSION_KEY_PREFIX)
    app.config.setdefault('SESSION_MAX_LENGTH',
                          default_config.SESSION_MAX_LENGTH)
    app.config.setdefault('SESSION_DEFAULT_MAX_AGE',
                          default_config.SESSION_DEFAULT_MAX_AGE)
    app.config.setdefault('SESSION_MAX_AGE', default_config.SESSION_MAX_AGE)
    app.config.setdefault('SESSION_SERIALIZER',
                          default_config.SESSION_SERIALIZER)


def get_store(app: Optional[Flask] = None) -> SessionStore:
    """Get a new :class:`.SessionStore` configured for ``app``."""
    config = _get_config(app)
    key_pairs = parse_key_pairs(config.get('SESSION_KEY_PAIRS', ''))
    if not key_pairs:
        raise ConfigurationError('SESSION_KEY_PAIRS is not set')
    return SessionStore(
        get_redis(config),
        *key_pairs,
        key_prefix=config.get('SESSION_KEY_PREFIX', 'session_'),
        max_length=int(config.get('SESSION_MAX_LENGTH', '4096')),
        default_max_age=int(config.get('SESSION_DEFAULT_MAX_AGE', '1200')),
        max_age=int(config.get('SESSION_MAX_AGE', str(DEFAULT_MAX_AGE))),
        serializer=get_serializer(config.get('SESSION_SERIALIZER', 'pickle'))
    )


def current_store() -> SessionStore:
    """Get/create the :class:`.SessionStore` for this context."""
    if not has_app_context():
        return get_store()
    if 'kvsessions' in current_app.extensions:
        store: SessionStore = current_app.extensions['kvsessions']
        return store
    if 'kvsessions_store' not in g:
        g.kvsessions_store = get_store()
    return g.kvsessions_store      # type: ignore


@wraps(SessionStore.get)
def get(request: Request, name: str) -> Session:
    """Get the session ``name`` for this request."""
    return current_store().get(request, name)


@wraps(SessionStore.save)
def save(request: Request, response: Response, session: Session) -> None:
    """Save a session and set its cookie."""
    return current_store().save(request, response, session)


@wraps(SessionStore.delete)
def delete(request: Request, response: Response, session: Session) -> None:
    """Delete a session and expire its cookie."""
    return current_store().delete(request, response, session)
