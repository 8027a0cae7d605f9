"""
Lease-bound session records in Redis.

Records expire together with a lease, which binds a time-to-live to one or
more keys. A lease is itself a Redis key (``lease:<id>``) that expires after
its TTL; writing a record under a lease gives the record the lease's
remaining lifetime, so that both disappear at the same time.

The Redis client is thread safe and connections are attached at the
time a command is executed; :class:`LeaseStore` only adds the key prefix and
lease bookkeeping.
"""

import secrets
from typing import Any, Mapping, Optional, Union

import redis
from redis.cluster import RedisCluster

from .exceptions import InvalidLease, LeaseGrantFailed, LeaseNotFound, \
    SessionWriteFailed, SessionReadFailed, SessionDeletionFailed
from . import logging

logger = logging.getLogger(__name__)

Client = Union[redis.Redis, RedisCluster]

LEASE_NAMESPACE = 'lease:'


class LeaseStore(object):
    """Puts, gets and deletes prefixed keys with lease-based expiration."""

    def __init__(self, client: Client, key_prefix: str = 'session_') -> None:
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f'{self.key_prefix}{key}'

    def grant_lease(self, ttl: int) -> int:
        """
        Create a lease that expires after ``ttl`` seconds.

        Parameters
        ----------
        ttl : int
            Lifetime in whole seconds. Must be positive.

        Returns
        -------
        int
            The lease ID.

        Raises
        ------
        :class:`InvalidLease`
            Raised without contacting Redis if ``ttl`` is not positive.
        :class:`LeaseGrantFailed`

        """
        if int(ttl) <= 0:
            raise InvalidLease(f'Lease TTL must be positive, got {ttl}')
        lease_id = secrets.randbits(63)
        try:
            created = self.client.set(f'{LEASE_NAMESPACE}{lease_id:x}',
                                      int(ttl), ex=int(ttl), nx=True)
        except redis.exceptions.ConnectionError as e:
            raise LeaseGrantFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise LeaseGrantFailed(f'Failed to grant lease: {e}') from e
        if not created:
            raise LeaseGrantFailed(f'Lease {lease_id:x} already exists')
        logger.debug('Granted lease %x with TTL %i', lease_id, ttl)
        return lease_id

    def put(self, key: str, value: bytes, lease_id: int) -> None:
        """
        Write ``value`` under ``key``, expiring with the lease ``lease_id``.

        Raises
        ------
        :class:`LeaseNotFound`
            Raised if the lease does not exist or has already expired.
        :class:`SessionWriteFailed`

        """
        try:
            remaining = self.client.pttl(f'{LEASE_NAMESPACE}{lease_id:x}')
            if remaining is None or remaining <= 0:
                raise LeaseNotFound(f'Requested lease {lease_id:x} not found')
            self.client.set(self._key(key), value, px=remaining)
        except LeaseNotFound:
            raise
        except redis.exceptions.ConnectionError as e:
            raise SessionWriteFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionWriteFailed(f'Failed to write: {e}') from e

    def get(self, key: str) -> Optional[bytes]:
        """
        Read the value stored under ``key``.

        Returns ``None`` if there is no such record. Anything other than a
        single stored value is treated the same way.

        Raises
        ------
        :class:`SessionReadFailed`

        """
        try:
            value = self.client.get(self._key(key))
        except redis.exceptions.ConnectionError as e:
            raise SessionReadFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionReadFailed(f'Failed to read: {e}') from e
        if isinstance(value, str):
            value = value.encode('utf-8')
        if not isinstance(value, bytes):
            return None
        return value

    def delete(self, key: str) -> None:
        """
        Delete the record stored under ``key``, if there is one.

        Raises
        ------
        :class:`SessionDeletionFailed`

        """
        try:
            self.client.delete(self._key(key))
        except redis.exceptions.ConnectionError as e:
            raise SessionDeletionFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e

    def close(self) -> None:
        """Close the connections held by the client."""
        self.client.close()


def get_redis(config: Mapping[str, Any]) -> Client:
    """
    Get a Redis client from configuration.

    Socket timeouts bound every call, so that a request that runs out of
    time aborts its store calls rather than leaving them hanging.
    """
    host = config.get('REDIS_HOST', 'localhost')
    port = int(config.get('REDIS_PORT', '6379'))
    db = int(config.get('REDIS_DATABASE', '0'))
    cluster = str(config.get('REDIS_CLUSTER', '0')) == '1'
    timeout = float(config.get('REDIS_SOCKET_TIMEOUT', '5'))
    logger.debug('New Redis connection at %s, port %s', host, port)
    if cluster:
        return RedisCluster(host=host, port=port,
                            socket_timeout=timeout,
                            socket_connect_timeout=timeout)
    return redis.Redis(host=host, port=port, db=db,
                       socket_timeout=timeout,
                       socket_connect_timeout=timeout)
