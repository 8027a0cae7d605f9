"""
Signing and encryption of session identifiers carried in cookies.

A cookie value is an HS256 JSON web token signed with a codec's hash key. The
token binds the cookie name and a creation timestamp (``iat``) to the value,
so that it cannot be replayed under another cookie name and expires after
:attr:`SecureCookie.max_age` seconds. If a block key is configured, the value
is encrypted with Fernet before signing.

Several codecs can be used together to rotate keys: new cookies are encoded
with the first codec, and cookies are decoded with whichever codec accepts
them first. See :func:`codecs_from_pairs`.
"""

import os
import time
from base64 import urlsafe_b64encode
from typing import List, Optional, Sequence, Union

import jwt
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .domain import DEFAULT_MAX_AGE
from .exceptions import IdentifierDecodeError, IdentifierEncodeError, \
    ExpiredIdentifier, ConfigurationError
from . import logging

logger = logging.getLogger(__name__)

Key = Union[bytes, str]

ALGORITHM = 'HS256'
BLOCK_KEY_SIZES = (16, 24, 32)
MAX_TOKEN_LENGTH = 4096
"""Browsers drop cookies larger than this."""


def generate_random_key(length: int = 32) -> bytes:
    """Generate ``length`` cryptographically random bytes."""
    return os.urandom(length)


def _as_bytes(key: Key) -> bytes:
    if isinstance(key, str):
        return key.encode('utf-8')
    return key


def _fernet(block_key: bytes) -> Fernet:
    """Derive a Fernet cipher from an AES-sized block key."""
    derived = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=b'kvsessions.cookies.block-key',
    ).derive(block_key)
    return Fernet(urlsafe_b64encode(derived))


class SecureCookie(object):
    """Encodes and decodes signed, optionally encrypted, cookie values."""

    def __init__(self, hash_key: Key, block_key: Optional[Key] = None,
                 max_age: int = DEFAULT_MAX_AGE) -> None:
        """
        Configure the codec.

        Parameters
        ----------
        hash_key : bytes or str
            Secret used to sign tokens. Should be 32 or 64 random bytes.
        block_key : bytes or str
            Optional secret used to encrypt the value. Must be 16, 24 or 32
            bytes long.
        max_age : int
            Maximum age of a token, in seconds. Zero disables the check.

        """
        if not hash_key:
            raise ConfigurationError('Hash key is not set')
        self._hash_key = _as_bytes(hash_key)
        self._cipher: Optional[Fernet] = None
        if block_key:
            block_key = _as_bytes(block_key)
            if len(block_key) not in BLOCK_KEY_SIZES:
                raise ConfigurationError(
                    f'Block key must be 16, 24 or 32 bytes, not'
                    f' {len(block_key)}'
                )
            self._cipher = _fernet(block_key)
        self.max_age = max_age

    def set_max_age(self, max_age: int) -> None:
        """Set the maximum age, in seconds, accepted when decoding."""
        self.max_age = max_age

    def encode(self, name: str, value: str) -> str:
        """
        Sign (and encrypt, if configured) ``value`` for the cookie ``name``.

        Raises
        ------
        :class:`IdentifierEncodeError`
            Raised if the token exceeds the size a browser will accept.

        """
        if self._cipher is not None:
            value = self._cipher.encrypt(value.encode('utf-8')).decode('ascii')
        claims = {'name': name, 'iat': int(time.time()), 'value': value}
        token = jwt.encode(claims, self._hash_key, algorithm=ALGORITHM)
        if isinstance(token, bytes):
            token = token.decode('ascii')
        if len(token) > MAX_TOKEN_LENGTH:
            raise IdentifierEncodeError('The encoded value is too long')
        return token

    def decode(self, name: str, token: str) -> str:
        """
        Verify ``token`` and get the value that it carries.

        Raises
        ------
        :class:`IdentifierDecodeError`
            Raised if the token is malformed, forged, or issued for another
            cookie name.
        :class:`ExpiredIdentifier`
            Raised if the token is authentic but older than :attr:`max_age`.

        """
        if len(token) > MAX_TOKEN_LENGTH:
            raise IdentifierDecodeError('The value is too long')
        try:
            claims = jwt.decode(token, self._hash_key, algorithms=[ALGORITHM],
                                options={'require': ['iat']})
        except jwt.exceptions.InvalidTokenError as e:
            raise IdentifierDecodeError(f'Invalid token: {e}') from e

        try:
            issued_at = int(claims['iat'])
            value = claims['value']
            token_name = claims['name']
        except (KeyError, TypeError, ValueError) as e:
            raise IdentifierDecodeError('Token payload malformed') from e
        if token_name != name:
            raise IdentifierDecodeError('Token was issued for another cookie')
        if self.max_age != 0 and time.time() - issued_at > self.max_age:
            raise ExpiredIdentifier('Token has expired')
        if not isinstance(value, str):
            raise IdentifierDecodeError('Token payload malformed')

        if self._cipher is not None:
            try:
                plain = self._cipher.decrypt(value.encode('ascii'))
                value = plain.decode('utf-8')
            except (InvalidToken, UnicodeError) as e:
                raise IdentifierDecodeError('Value could not be decrypted') \
                    from e
        return value


def codecs_from_pairs(*key_pairs: Optional[Key],
                      max_age: int = DEFAULT_MAX_AGE) -> List[SecureCookie]:
    """
    Build codecs from a flat sequence of hash and block keys.

    Keys are given as ``hash_key1, block_key1, hash_key2, block_key2, ...``.
    The block key of the last pair may be omitted, and any block key may be
    ``None`` to sign without encrypting.

    Raises
    ------
    :class:`ConfigurationError`
        Raised if no keys are given or any key is invalid.

    """
    if not key_pairs:
        raise ConfigurationError('At least one hash key is required')
    codecs = []
    for i in range(0, len(key_pairs), 2):
        hash_key = key_pairs[i]
        block_key = key_pairs[i + 1] if i + 1 < len(key_pairs) else None
        if not hash_key:
            raise ConfigurationError(f'Hash key {i // 2} is not set')
        codecs.append(SecureCookie(hash_key, block_key, max_age=max_age))
    return codecs


def encode_multi(name: str, value: str,
                 codecs: Sequence[SecureCookie]) -> str:
    """Encode ``value`` with the first codec that succeeds."""
    if not codecs:
        raise ConfigurationError('No codecs were provided')
    errors: List[Exception] = []
    for codec in codecs:
        try:
            return codec.encode(name, value)
        except IdentifierEncodeError as e:
            errors.append(e)
    raise IdentifierEncodeError(f'Could not encode value: {errors[-1]}')


def decode_multi(name: str, token: str,
                 codecs: Sequence[SecureCookie]) -> str:
    """
    Decode ``token`` with the first codec that accepts it.

    Codecs are tried in order, so that cookies issued before a key rotation
    remain valid while the old keys are still configured.

    Raises
    ------
    :class:`IdentifierDecodeError`
        Raised if no codec accepts the token. The error from each codec is
        available on ``errors``.
    :class:`ExpiredIdentifier`
        Raised if a codec verified the token but found it expired.

    """
    if not codecs:
        raise ConfigurationError('No codecs were provided')
    errors: List[IdentifierDecodeError] = []
    for codec in codecs:
        try:
            return codec.decode(name, token)
        except IdentifierDecodeError as e:
            errors.append(e)
    logger.debug('Cookie %s rejected by %i codecs', name, len(errors))
    if any(isinstance(e, ExpiredIdentifier) for e in errors):
        raise ExpiredIdentifier('Session cookie has expired',
                                errors=list(errors))
    raise IdentifierDecodeError('Session cookie could not be verified',
                                errors=list(errors))
