"""
Web sessions in a lease-based key-value store.

This package keeps session values in Redis, where each record expires with a
lease tied to the session's max-age, and gives the client only a signed (and
optionally encrypted) session ID in a cookie.

Quick start
-----------

.. code-block:: python

   import redis
   from kvsessions import SessionStore, IdentifierDecodeError

   store = SessionStore(redis.Redis(), b'a 32-byte hash key.............',
                        b'a 32-byte block key............')

   def handle(request, response):
       try:
           session = store.get(request, 'session')
       except IdentifierDecodeError as e:
           session = e.session     # Forged or expired cookie; start over.
       session.values['foo'] = 'bar'
       session.save(request, response)

To end a session, set ``session.options.max_age = -1`` and save it. To
change the lifetime of all sessions, use :meth:`SessionStore.set_max_age`,
which also updates the age limit enforced on incoming cookies.

Flask applications can use :class:`kvsessions.extension.Sessions` instead.
"""

from .domain import Session, Options
from .exceptions import IdentifierDecodeError, ExpiredIdentifier, \
    IdentifierEncodeError, SerializationError, PayloadTooLargeError, \
    BackendError, ConfigurationError
from .serializers import JSONSerializer, PickleSerializer
from .store import SessionStore
