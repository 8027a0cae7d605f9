"""Default configuration for the session store, read from the environment."""

import os

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')
REDIS_SOCKET_TIMEOUT = os.environ.get('REDIS_SOCKET_TIMEOUT', '5')
"""Seconds before a store call is abandoned."""

SESSION_STORE_COOKIE_NAME = os.environ.get('SESSION_STORE_COOKIE_NAME',
                                           'kvsession')

SESSION_KEY_PAIRS = os.environ.get('SESSION_KEY_PAIRS', '')
"""
Comma-separated ``hash_key[:block_key]`` pairs, newest first.

Cookies are signed with the first hash key (and encrypted with its block
key, if any); older pairs are kept only to accept cookies issued before a
rotation.
"""

SESSION_KEY_PREFIX = os.environ.get('SESSION_KEY_PREFIX', 'session_')
SESSION_MAX_LENGTH = os.environ.get('SESSION_MAX_LENGTH', '4096')
SESSION_DEFAULT_MAX_AGE = os.environ.get('SESSION_DEFAULT_MAX_AGE', '1200')
SESSION_MAX_AGE = os.environ.get('SESSION_MAX_AGE', str(86400 * 30))
SESSION_SERIALIZER = os.environ.get('SESSION_SERIALIZER', 'pickle')

LOGLEVEL = os.environ.get('LOGLEVEL', '40')
