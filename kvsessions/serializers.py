"""
Serializers for session values.

Two strategies are provided. :class:`JSONSerializer` produces canonical JSON
and requires string keys. :class:`PickleSerializer` handles any picklable
keys and values, and is the default.

Pickled payloads are only ever read back from the session store, never from
the client; anyone with write access to the store can execute code in the
application.
"""

import json
import pickle
from abc import ABC, abstractmethod
from typing import Any, Dict

from .exceptions import SerializationError, ConfigurationError
from . import logging

logger = logging.getLogger(__name__)


class SessionSerializer(ABC):
    """Converts a session value map to and from bytes."""

    @abstractmethod
    def serialize(self, values: Dict[Any, Any]) -> bytes:
        """Encode ``values`` as bytes."""

    @abstractmethod
    def deserialize(self, data: bytes, values: Dict[Any, Any]) -> None:
        """Decode ``data`` into ``values``."""


class JSONSerializer(SessionSerializer):
    """Encodes the session values as a JSON object."""

    def serialize(self, values: Dict[Any, Any]) -> bytes:
        """
        Encode ``values`` as canonical JSON.

        Raises
        ------
        :class:`SerializationError`
            Raised if a key is not a string, or a value cannot be encoded.

        """
        for key in values:
            if not isinstance(key, str):
                logger.error('Non-string key: cannot serialize to JSON')
                raise SerializationError(
                    f'Non-string key value, cannot serialize to JSON: {key!r}'
                )
        try:
            return json.dumps(values, sort_keys=True,
                              separators=(',', ':')).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise SerializationError(f'Cannot serialize to JSON: {e}') from e

    def deserialize(self, data: bytes, values: Dict[Any, Any]) -> None:
        """
        Merge the JSON object in ``data`` into ``values``.

        Existing entries in ``values`` are kept unless overwritten, so the
        target should be empty.
        """
        try:
            decoded = json.loads(data)
        except (TypeError, ValueError) as e:
            raise SerializationError(f'Invalid JSON payload: {e}') from e
        if not isinstance(decoded, dict):
            raise SerializationError('JSON payload is not an object')
        values.update(decoded)


class PickleSerializer(SessionSerializer):
    """Encodes the session values with :mod:`pickle`."""

    def serialize(self, values: Dict[Any, Any]) -> bytes:
        try:
            return pickle.dumps(values, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise SerializationError(f'Cannot pickle session: {e}') from e

    def deserialize(self, data: bytes, values: Dict[Any, Any]) -> None:
        """
        Replace the contents of ``values`` with the unpickled map.

        ``values`` is only touched if the whole payload decodes.
        """
        try:
            decoded = pickle.loads(data)
        except Exception as e:    # Unpickling can raise nearly anything.
            raise SerializationError(f'Corrupt pickle payload: {e}') from e
        if not isinstance(decoded, dict):
            raise SerializationError('Pickle payload is not a dict')
        values.clear()
        values.update(decoded)


SERIALIZERS = {
    'json': JSONSerializer,
    'text': JSONSerializer,
    'pickle': PickleSerializer,
    'binary': PickleSerializer,
}


def get_serializer(name: str) -> SessionSerializer:
    """Get a serializer by its configuration name."""
    try:
        return SERIALIZERS[name.lower()]()
    except KeyError as e:
        raise ConfigurationError(f'Unknown session serializer: {name}') from e
