"""
Server-side browser sessions, kept in redis.

The browser holds only a signed cookie carrying the session key and a nonce;
the user record lives in redis under that key. Controllers never see redis:
they receive a :class:`Session`, which offers ``get_user``, ``set_user`` and
``destroy``.
"""

import json
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import dateutil.parser
import fakeredis
import jwt
import redis
from flask import Flask, current_app
from pytz import UTC

import logging

from ..domain import UserRecord
from .exceptions import ExpiredToken, InvalidToken, SessionCreationFailed, \
    SessionDeletionFailed, UnknownSession

logger = logging.getLogger(__name__)


def _generate_nonce() -> str:
    return secrets.token_hex(8)


class Session(object):
    """A browser session, anonymous until a user is set."""

    def __init__(self, store: 'SessionStore', session_id: str, nonce: str,
                 user: Optional[UserRecord] = None,
                 persisted: bool = False) -> None:
        self._store = store
        self.session_id = session_id
        self.nonce = nonce
        self._user = user
        self.persisted = persisted
        self.modified = False

    @property
    def authenticated(self) -> bool:
        """Whether a user is attached to the session."""
        return self._user is not None

    def get_user(self) -> Optional[UserRecord]:
        """Get the user attached to this session, if any."""
        return self._user

    def set_user(self, user: UserRecord) -> None:
        """
        Attach ``user`` to the session, and write it to the store.

        The session key and nonce are replaced, so that a key issued before
        login never identifies an authenticated session.
        """
        if self.persisted:
            try:
                self._store.delete(self.session_id)
            except SessionDeletionFailed as e:
                logger.error('Could not delete session %s: %s',
                             self.session_id, e)
        self.session_id = str(uuid.uuid4())
        self.nonce = _generate_nonce()
        self._user = user
        self._store.save(self)
        self.persisted = True
        self.modified = True

    def destroy(self) -> None:
        """Forget the user, and remove the session from the store."""
        if self.persisted:
            try:
                self._store.delete(self.session_id)
            except SessionDeletionFailed as e:
                logger.error('Could not delete session %s: %s',
                             self.session_id, e)
        self._user = None
        self.persisted = False
        self.modified = True


class SessionStore(object):
    """
    Manages a connection to Redis.

    The StrictRedis instance is thread safe and connections are attached at
    the time a command is executed. This class simply provides a container for
    configuration.
    """

    def __init__(self, host: str, port: int, db: int, secret: str,
                 duration: int = 36000, cluster: bool = False,
                 fake: bool = False) -> None:
        """Open the connection to Redis."""
        if fake:
            logger.debug('Using fake redis')
            self.r = fakeredis.FakeStrictRedis(server=fakeredis.FakeServer())
        elif cluster:
            logger.debug('New Redis cluster connection at %s, port %s',
                         host, port)
            self.r = redis.RedisCluster(host=host, port=port)
        else:
            logger.debug('New Redis connection at %s, port %s', host, port)
            self.r = redis.StrictRedis(host=host, port=port, db=db)
        self._secret = secret
        self._duration = duration

    def new(self) -> Session:
        """Start a new, anonymous session. Nothing is written to redis."""
        return Session(self, str(uuid.uuid4()), _generate_nonce())

    def save(self, session: Session) -> None:
        """Write the user of ``session`` to the store."""
        user = session.get_user()
        data = {
            'nonce': session.nonce,
            'user': user.to_dict() if user is not None else None
        }
        try:
            self.r.set(session.session_id, json.dumps(data),
                       ex=self._duration)
        except redis.exceptions.ConnectionError as e:
            raise SessionCreationFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e

    def delete(self, session_id: str) -> None:
        """Delete a session in the key-value store by ID."""
        try:
            self.r.delete(session_id)
        except redis.exceptions.ConnectionError as e:
            raise SessionDeletionFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e

    def load(self, cookie: str) -> Session:
        """
        Load a session using a session cookie.

        Raises
        ------
        :class:`InvalidToken`
            The cookie is malformed or forged.
        :class:`ExpiredToken`
            The cookie has expired.
        :class:`UnknownSession`
            There is no such session in the store, or the store cannot be
            reached.

        """
        cookie_data = self._unpack_cookie(cookie)
        try:
            session_id = cookie_data['session_id']
            nonce = cookie_data['nonce']
            expires = dateutil.parser.parse(cookie_data['expires'])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken('Token payload malformed') from e
        if expires <= datetime.now(tz=UTC):
            raise ExpiredToken('Session has expired')

        try:
            raw = self.r.get(session_id)
        except redis.exceptions.ConnectionError as e:
            logger.error('Could not read session %s: %s', session_id, e)
            raise UnknownSession(f'Connection failed: {e}') from e
        if not raw:
            raise UnknownSession(f'Failed to find session {session_id}')
        try:
            data = json.loads(raw)
        except json.decoder.JSONDecodeError as e:
            raise InvalidToken('Invalid or corrupted session') from e
        if nonce != data.get('nonce'):
            raise InvalidToken('Invalid token; likely a forgery')

        user = data.get('user')
        return Session(self, session_id, nonce,
                       user=UserRecord.from_dict(user) if user else None,
                       persisted=True)

    def load_or_new(self, cookie: Optional[str]) -> Session:
        """Load the session for ``cookie``, or start an anonymous one."""
        if not cookie:
            return self.new()
        try:
            return self.load(cookie)
        except (InvalidToken, UnknownSession) as e:
            logger.debug('Starting a new session: %s', e)
            return self.new()

    def generate_cookie(self, session: Session) -> str:
        """Generate a cookie value for ``session``."""
        expires = datetime.now(tz=UTC) + timedelta(seconds=self._duration)
        return self._pack_cookie({
            'session_id': session.session_id,
            'nonce': session.nonce,
            'expires': expires.isoformat()
        })

    @property
    def duration(self) -> int:
        """Lifetime of a session, in seconds."""
        return self._duration

    def _unpack_cookie(self, cookie: str) -> Dict[str, Any]:
        try:
            return dict(jwt.decode(cookie, self._secret, algorithms=['HS256']))
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Session cookie is malformed') from e

    def _pack_cookie(self, cookie_data: Dict[str, Any]) -> str:
        return jwt.encode(cookie_data, self._secret, algorithm='HS256')


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('REDIS_HOST', 'localhost')
    app.config.setdefault('REDIS_PORT', '6379')
    app.config.setdefault('REDIS_DATABASE', '0')
    app.config.setdefault('REDIS_CLUSTER', '0')
    app.config.setdefault('REDIS_FAKE', False)
    app.config.setdefault('SESSION_DURATION', '36000')
    app.config.setdefault('SESSION_COOKIE_NAME', 'FORWARDAUTH_SESSION_ID')


def get_redis_session(config: Dict[str, Any]) -> SessionStore:
    """Create a :class:`SessionStore` from application config."""
    return SessionStore(
        host=config.get('REDIS_HOST', 'localhost'),
        port=int(config.get('REDIS_PORT', '6379')),
        db=int(config.get('REDIS_DATABASE', '0')),
        secret=config['JWT_SECRET'],
        duration=int(config.get('SESSION_DURATION', '36000')),
        cluster=str(config.get('REDIS_CLUSTER', '0')) == '1',
        fake=bool(config.get('REDIS_FAKE'))
    )


def current_store() -> SessionStore:
    """Get the :class:`SessionStore` for this application."""
    store: Optional[SessionStore] = current_app.extensions.get('sessions')
    if store is None:
        store = get_redis_session(current_app.config)
        current_app.extensions['sessions'] = store
    return store
