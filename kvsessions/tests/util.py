"""Helpers for testing against an in-memory stand-in for Redis."""

import time
from typing import Any, Dict, Optional, Tuple

from werkzeug.http import parse_cookie
from werkzeug.wrappers import Request, Response

HASH_KEY = b'0123456789abcdef0123456789abcdef'
BLOCK_KEY = b'fedcba9876543210fedcba9876543210'
OTHER_HASH_KEY = b'abcdefghijklmnopqrstuvwxyz012345'


class FakeRedis(object):
    """Implements the few Redis commands used by the lease store."""

    def __init__(self) -> None:
        self.data: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self.calls = 0

    def _alive(self, key: str) -> bool:
        if key not in self.data:
            return False
        _, expires = self.data[key]
        if expires is not None and expires <= time.time():
            del self.data[key]
            return False
        return True

    def set(self, key: str, value: Any, ex: Optional[int] = None,
            px: Optional[int] = None, nx: bool = False) -> Optional[bool]:
        self.calls += 1
        if nx and self._alive(key):
            return None
        if not isinstance(value, bytes):
            value = str(value).encode('utf-8')
        expires = None
        if ex is not None:
            expires = time.time() + ex
        elif px is not None:
            expires = time.time() + px / 1000
        self.data[key] = (value, expires)
        return True

    def get(self, key: str) -> Optional[bytes]:
        self.calls += 1
        if not self._alive(key):
            return None
        return self.data[key][0]

    def pttl(self, key: str) -> int:
        self.calls += 1
        if not self._alive(key):
            return -2
        expires = self.data[key][1]
        if expires is None:
            return -1
        return int((expires - time.time()) * 1000)

    def ttl(self, key: str) -> int:
        remaining = self.pttl(key)
        return remaining if remaining < 0 else round(remaining / 1000)

    def delete(self, *keys: str) -> int:
        self.calls += 1
        deleted = 0
        for key in keys:
            if self._alive(key):
                del self.data[key]
                deleted += 1
        return deleted

    def close(self) -> None:
        pass


def cookie_header(response: Response, name: str) -> Optional[str]:
    """Get the ``Set-Cookie`` header for cookie ``name``."""
    for header in response.headers.getlist('Set-Cookie'):
        if header.split('=', 1)[0] == name:
            return header
    return None


def cookie_value(response: Response, name: str) -> Optional[str]:
    """Get the value set on ``response`` for cookie ``name``."""
    header = cookie_header(response, name)
    if header is None:
        return None
    return parse_cookie(header.split(';', 1)[0]).get(name)


def request_with_cookie(name: Optional[str] = None,
                        value: Optional[str] = None) -> Request:
    """Build a request that carries a single cookie."""
    headers = {}
    if name is not None:
        headers['Cookie'] = f'{name}={value}'
    return Request.from_values(headers=headers)
