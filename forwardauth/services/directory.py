"""
Adapter for the LDAP directory.

Connects, binds and searches; no business logic lives here. Each call to
:meth:`DirectoryClient.connection` opens a fresh connection and releases it
on the way out, no matter how the block exits.
"""

from contextlib import contextmanager
from typing import Any, ContextManager, Dict, Iterator, List, NamedTuple, \
    Tuple

from flask import Flask
from ldap3 import NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException

import logging

from ..exceptions import ConfigurationError, DirectoryUnavailable

logger = logging.getLogger(__name__)


class DirectoryConfig(NamedTuple):
    """Everything needed to reach and search the directory."""

    url: str
    bind_dn: str
    bind_password: str
    search_base: str
    timeout: int = 10
    login_attributes: Tuple[str, ...] = ('sAMAccountName', 'mail',
                                         'userPrincipalName')


class DirectoryClient(object):
    """Opens bound connections to the directory, and searches it."""

    def __init__(self, config: DirectoryConfig) -> None:
        self.config = config
        self._server = Server(config.url, connect_timeout=config.timeout,
                              get_info=NONE)

    def _connect(self, user: str, password: str) -> Connection:
        return Connection(self._server, user=user, password=password,
                          receive_timeout=self.config.timeout,
                          raise_exceptions=True, read_only=True)

    @contextmanager
    def connection(self, user: str, password: str) -> Iterator[Connection]:
        """
        Open a connection bound as ``user``.

        Parameters
        ----------
        user : str
            DN to bind as.
        password : str

        Raises
        ------
        :class:`DirectoryUnavailable`
            Raised if the directory cannot be reached, or the bind fails.

        """
        conn = self._connect(user, password)
        try:
            try:
                bound = conn.bind()
            except LDAPException as e:
                raise DirectoryUnavailable(f'Bind failed for {user}: {e}') \
                    from e
            if not bound:
                raise DirectoryUnavailable(
                    f'Bind failed for {user}: {conn.result}'
                )
            yield conn
        finally:
            self._release(conn)

    def service_connection(self) -> ContextManager[Connection]:
        """Open a connection bound with the service credential."""
        return self.connection(self.config.bind_dn, self.config.bind_password)

    def search(self, conn: Connection, search_filter: str,
               attributes: List[str]) -> Iterator[Dict[str, Any]]:
        """
        Search beneath the configured base, and yield the matching entries.

        Entries are yielded in the order in which the directory returned them.
        Referrals and other non-entry responses are skipped.

        Raises
        ------
        :class:`DirectoryUnavailable`
            Raised if the search fails.

        """
        try:
            conn.search(self.config.search_base, search_filter,
                        search_scope=SUBTREE, attributes=attributes)
        except LDAPException as e:
            raise DirectoryUnavailable(f'Search failed: {e}') from e
        for entry in conn.response or []:
            if entry.get('type') == 'searchResEntry':
                yield entry

    def _release(self, conn: Connection) -> None:
        try:
            conn.unbind()
        except LDAPException as e:
            logger.debug('Error releasing directory connection: %s', e)


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('LDAP_URL', None)
    app.config.setdefault('LDAP_BIND_DN', None)
    app.config.setdefault('LDAP_BIND_PASSWORD', '')
    app.config.setdefault('LDAP_SEARCH_BASE', None)
    app.config.setdefault('LDAP_TIMEOUT', 10)
    app.config.setdefault('LDAP_LOGIN_ATTRIBUTES',
                          ['sAMAccountName', 'mail', 'userPrincipalName'])


def get_config(config: Dict[str, Any]) -> DirectoryConfig:
    """Build a :class:`DirectoryConfig` from the application config."""
    missing = [
        key for key in ('LDAP_URL', 'LDAP_SEARCH_BASE', 'LDAP_BIND_DN')
        if not config.get(key)
    ]
    if missing:
        raise ConfigurationError(f'Missing required config: {missing}')
    return DirectoryConfig(
        url=config['LDAP_URL'],
        bind_dn=config['LDAP_BIND_DN'],
        bind_password=config.get('LDAP_BIND_PASSWORD') or '',
        search_base=config['LDAP_SEARCH_BASE'],
        timeout=int(config.get('LDAP_TIMEOUT', 10)),
        login_attributes=tuple(config.get('LDAP_LOGIN_ATTRIBUTES')
                               or DirectoryConfig._field_defaults[
                                   'login_attributes'])
    )
