"""Tests for :mod:`kvsessions.backend`."""

from unittest import TestCase, mock

from redis.exceptions import ConnectionError, ResponseError

from .. import backend
from ..exceptions import BackendError, InvalidLease, LeaseGrantFailed, \
    LeaseNotFound, SessionWriteFailed, SessionReadFailed, \
    SessionDeletionFailed
from .util import FakeRedis


class TestGrantLease(TestCase):
    """Leases are created as expiring keys."""

    def test_grant(self):
        """A lease key is created with the requested TTL."""
        mock_redis = mock.MagicMock()
        mock_redis.set.return_value = True
        store = backend.LeaseStore(mock_redis)
        lease_id = store.grant_lease(1200)
        self.assertIsInstance(lease_id, int)
        self.assertEqual(mock_redis.set.call_count, 1)
        args, kwargs = mock_redis.set.call_args
        self.assertEqual(args[0], f'lease:{lease_id:x}')
        self.assertEqual(kwargs['ex'], 1200)
        self.assertTrue(kwargs['nx'])

    def test_non_positive_ttl(self):
        """A TTL of zero or less fails without calling Redis."""
        mock_redis = mock.MagicMock()
        store = backend.LeaseStore(mock_redis)
        for ttl in (0, -1):
            with self.assertRaises(InvalidLease):
                store.grant_lease(ttl)
        self.assertEqual(mock_redis.method_calls, [])

    def test_connection_failed(self):
        """:class:`.LeaseGrantFailed` is raised when Redis is unreachable."""
        mock_redis = mock.MagicMock()
        mock_redis.set.side_effect = ConnectionError
        with self.assertRaises(LeaseGrantFailed):
            backend.LeaseStore(mock_redis).grant_lease(60)

    def test_collision(self):
        """An existing lease is never reused."""
        mock_redis = mock.MagicMock()
        mock_redis.set.return_value = None
        with self.assertRaises(LeaseGrantFailed):
            backend.LeaseStore(mock_redis).grant_lease(60)


class TestPut(TestCase):
    """Records are written with the lifetime of their lease."""

    def test_put(self):
        """The record expires when the lease does."""
        mock_redis = mock.MagicMock()
        mock_redis.pttl.return_value = 59000
        store = backend.LeaseStore(mock_redis, 'session_')
        store.put('FOOID', b'data', 0xabc)
        mock_redis.pttl.assert_called_once_with('lease:abc')
        mock_redis.set.assert_called_once_with('session_FOOID', b'data',
                                               px=59000)

    def test_unknown_lease(self):
        """Writing under a missing or expired lease fails."""
        mock_redis = mock.MagicMock()
        mock_redis.pttl.return_value = -2
        with self.assertRaises(LeaseNotFound):
            backend.LeaseStore(mock_redis).put('FOOID', b'data', 1)
        self.assertEqual(mock_redis.set.call_count, 0)

    def test_connection_failed(self):
        """:class:`.SessionWriteFailed` is raised when Redis is unreachable."""
        mock_redis = mock.MagicMock()
        mock_redis.pttl.return_value = 1000
        mock_redis.set.side_effect = ConnectionError
        with self.assertRaises(SessionWriteFailed) as ctx:
            backend.LeaseStore(mock_redis).put('FOOID', b'data', 1)
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)

    def test_other_failure(self):
        """Other Redis errors are wrapped as well."""
        mock_redis = mock.MagicMock()
        mock_redis.pttl.side_effect = ResponseError('WRONGTYPE')
        with self.assertRaises(BackendError):
            backend.LeaseStore(mock_redis).put('FOOID', b'data', 1)


class TestGet(TestCase):
    """Records are read by prefixed key."""

    def test_get(self):
        """The stored value is returned."""
        mock_redis = mock.MagicMock()
        mock_redis.get.return_value = b'data'
        store = backend.LeaseStore(mock_redis, 'foo_')
        self.assertEqual(store.get('FOOID'), b'data')
        mock_redis.get.assert_called_once_with('foo_FOOID')

    def test_missing(self):
        """A missing record is not an error."""
        mock_redis = mock.MagicMock()
        mock_redis.get.return_value = None
        self.assertIsNone(backend.LeaseStore(mock_redis).get('FOOID'))

    def test_unexpected_reply(self):
        """Anything but a single value is treated as absent."""
        mock_redis = mock.MagicMock()
        mock_redis.get.return_value = [b'one', b'two']
        self.assertIsNone(backend.LeaseStore(mock_redis).get('FOOID'))

    def test_connection_failed(self):
        """:class:`.SessionReadFailed` is raised when Redis is unreachable."""
        mock_redis = mock.MagicMock()
        mock_redis.get.side_effect = ConnectionError
        with self.assertRaises(SessionReadFailed):
            backend.LeaseStore(mock_redis).get('FOOID')


class TestDelete(TestCase):
    """Records are deleted by prefixed key."""

    def test_delete(self):
        """The prefixed key is deleted."""
        mock_redis = mock.MagicMock()
        backend.LeaseStore(mock_redis, 'foo_').delete('FOOID')
        mock_redis.delete.assert_called_once_with('foo_FOOID')

    def test_connection_failed(self):
        """Failure is raised as :class:`.SessionDeletionFailed`."""
        mock_redis = mock.MagicMock()
        mock_redis.delete.side_effect = ConnectionError
        with self.assertRaises(SessionDeletionFailed):
            backend.LeaseStore(mock_redis).delete('FOOID')


class TestLeaseLifetime(TestCase):
    """Records and leases expire together."""

    def test_record_follows_lease(self):
        """A record written under a lease has the lease's TTL."""
        client = FakeRedis()
        store = backend.LeaseStore(client)
        lease_id = store.grant_lease(86400)
        store.put('FOOID', b'data', lease_id)
        self.assertEqual(store.get('FOOID'), b'data')
        self.assertAlmostEqual(client.ttl('session_FOOID'), 86400, delta=1)
        self.assertAlmostEqual(client.ttl('session_FOOID'),
                               client.ttl(f'lease:{lease_id:x}'), delta=1)

    def test_delete_twice(self):
        """Deleting a missing record is not an error."""
        store = backend.LeaseStore(FakeRedis())
        store.delete('FOOID')
        store.delete('FOOID')


class TestGetRedis(TestCase):
    """Clients are built from configuration."""

    @mock.patch(f'{backend.__name__}.redis.Redis')
    def test_single_node(self, mock_redis):
        """A standalone client is used by default."""
        backend.get_redis({'REDIS_HOST': 'redis', 'REDIS_PORT': '1234',
                           'REDIS_DATABASE': '4',
                           'REDIS_SOCKET_TIMEOUT': '2'})
        mock_redis.assert_called_once_with(host='redis', port=1234, db=4,
                                           socket_timeout=2.0,
                                           socket_connect_timeout=2.0)

    @mock.patch(f'{backend.__name__}.RedisCluster')
    def test_cluster(self, mock_cluster):
        """A cluster client is used if configured."""
        backend.get_redis({'REDIS_HOST': 'redis', 'REDIS_PORT': '7000',
                           'REDIS_CLUSTER': '1'})
        self.assertEqual(mock_cluster.call_count, 1)
        self.assertEqual(mock_cluster.call_args[1]['port'], 7000)
