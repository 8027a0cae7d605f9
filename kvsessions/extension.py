"""Flask integration for the session store."""

from typing import Optional

from flask import Flask, request, Response

from .exceptions import IdentifierDecodeError
from .store import SessionStore, init_app, get_store
from . import logging

logger = logging.getLogger(__name__)


class Sessions(object):
    """
    Attaches a session from the key-value store to each request.

    Intended for use in a Flask application factory, for example:

    .. code-block:: python

       from flask import Flask
       from kvsessions.extension import Sessions


       def create_web_app() -> Flask:
           app = Flask('someapp')
           app.config.from_pyfile('config.py')
           Sessions(app)
           return app

    The session named by ``SESSION_STORE_COOKIE_NAME`` is then available as
    ``flask.request.kv_session``, and every session loaded during the request
    is saved when the response is sent.
    """

    def __init__(self, app: Optional[Flask] = None,
                 store: Optional[SessionStore] = None) -> None:
        """
        Initialize ``app`` with a session store.

        Parameters
        ----------
        app : :class:`Flask`
        store : :class:`.SessionStore`
            If not provided, one is created from the application config.

        """
        self.store = store
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Attach :meth:`.load_session` and :meth:`.save_sessions` to the app.

        Parameters
        ----------
        app : :class:`Flask`

        """
        self.app = app
        init_app(app)
        if self.store is None:
            self.store = get_store(app)
        app.extensions['kvsessions'] = self.store
        app.before_request(self.load_session)
        app.after_request(self.save_sessions)

    def load_session(self) -> None:
        """Load the session cookie, and attach the session to the request."""
        assert self.store is not None
        name = self.app.config['SESSION_STORE_COOKIE_NAME']
        try:
            session = self.store.get(request, name)
        except IdentifierDecodeError as e:
            # A stale or forged cookie is replaced on save.
            logger.info('Discarding invalid session cookie: %s', e)
            session = e.session
        request.kv_session = session    # type: ignore

    def save_sessions(self, response: Response) -> Response:
        """Save the sessions loaded during this request."""
        assert self.store is not None
        self.store.save_all(request, response)
        return response
