"""
Find users in the directory, and verify their passwords.

:class:`UserDirectory` receives its directory settings explicitly, as a
:class:`.DirectoryConfig`, rather than reading them from the application.
:func:`current_directory` builds one from the Flask config for use in routes.
"""

from typing import List, Optional

from flask import current_app, g
from ldap3.utils.conv import escape_filter_chars

import logging

from ..domain import UserRecord
from ..exceptions import ConfigurationError, DirectoryUnavailable, \
    PreconditionViolation
from .directory import DirectoryClient, DirectoryConfig, get_config

logger = logging.getLogger(__name__)

ATTRIBUTES = ['givenName', 'sn', 'cn', 'mail', 'memberOf']
"""Attributes retrieved for each matching account."""


class UserDirectory(object):
    """User lookup and password verification against the directory."""

    def __init__(self, config: DirectoryConfig,
                 client: Optional[DirectoryClient] = None) -> None:
        self.config = config
        self.client = client or DirectoryClient(config)

    def _user_filter(self, identifier: str) -> str:
        value = escape_filter_chars(identifier)
        clauses = ''.join(f'({attribute}={value})'
                          for attribute in self.config.login_attributes)
        return f'(|{clauses})'

    def find_user(self, identifier: str) -> List[UserRecord]:
        """
        Find accounts by username, e-mail address, or user principal name.

        Parameters
        ----------
        identifier : str
            As entered on the login form.

        Returns
        -------
        list
            Matching :class:`.UserRecord` instances, in the order in which the
            directory returned them. Empty if there are no matches.

        Raises
        ------
        :class:`DirectoryUnavailable`
            Raised if the service bind or the search fails.

        """
        if not isinstance(identifier, str):
            raise PreconditionViolation('identifier must be a str')

        search_filter = self._user_filter(identifier)
        logger.debug('Searching for user with filter %s', search_filter)
        with self.client.service_connection() as conn:
            users = [UserRecord.from_entry(entry) for entry
                     in self.client.search(conn, search_filter, ATTRIBUTES)]
        logger.debug('Found %i user(s) for %s', len(users), identifier)
        return users

    def authenticate(self, user: UserRecord, secret: str) -> bool:
        """
        Verify a password by binding as the user.

        Wrong passwords and directory failures both yield ``False``; the
        difference is only logged.

        Parameters
        ----------
        user : :class:`.UserRecord`
            Must have a ``dn``.
        secret : str

        Returns
        -------
        bool

        """
        if not isinstance(user, UserRecord) or not user.dn:
            raise PreconditionViolation('user must be a UserRecord with a dn')
        if not isinstance(secret, str):
            raise PreconditionViolation('secret must be a str')
        # An empty password would make this an anonymous bind.
        if not secret:
            logger.debug('Empty password for %s', user.dn)
            return False
        try:
            with self.client.connection(user.dn, secret):
                pass
        except DirectoryUnavailable as e:
            logger.warning('Could not bind as %s: %s', user.dn, e)
            return False
        return True


def get_user_directory(config: dict) -> UserDirectory:
    """Create a :class:`UserDirectory` from application config."""
    return UserDirectory(get_config(config))


def current_directory() -> Optional[UserDirectory]:
    """
    Get the :class:`UserDirectory` for this context.

    Returns ``None`` if the directory is not configured, which is only
    permitted in development.
    """
    if 'directory' not in g:
        try:
            g.directory = get_user_directory(current_app.config)
        except ConfigurationError as e:
            logger.error('Directory is not configured: %s', e)
            g.directory = None
    return g.directory     # type: ignore
