"""Flask configuration for the forward-authentication gateway."""

import os
import secrets


def _list(value: str) -> list:
    return [item.strip() for item in value.split(',') if item.strip()]


#################### Environment ####################
ENVIRONMENT = os.environ.get('FORWARDAUTH_ENV', 'production').lower()
"""Either ``production`` or ``development``."""

DEVELOPMENT = ENVIRONMENT == 'development'
"""In development the ``test``/``test`` login works without a directory.

Derived from the process environment when this module is imported; there is
no other way to turn it on.
"""

#################### General config for app ####################
BASE_PATH = os.environ.get('BASE_PATH', '/auth').rstrip('/')
"""Path prefix under which NGINX exposes the gateway."""

DEFAULT_LOGIN_REDIRECT_URL = os.environ.get('DEFAULT_LOGIN_REDIRECT_URL', '/')
"""Where to send the user after login, if they have not provided a valid
``request_uri``."""

REDIRECT_DOMAINS = _list(os.environ.get('REDIRECT_DOMAINS', ''))
"""Domains to which a user may be redirected after login.

Empty means that every ``request_uri`` is refused in favour of
:const:`DEFAULT_LOGIN_REDIRECT_URL`.
"""

#################### LDAP ####################
LDAP_URL = os.environ.get('LDAP_URL')
LDAP_BIND_DN = os.environ.get('LDAP_BIND_DN')
"""Service account used to search for users."""

LDAP_BIND_PASSWORD = os.environ.get('LDAP_BIND_PASSWORD', '')
LDAP_SEARCH_BASE = os.environ.get('LDAP_SEARCH_BASE')
LDAP_TIMEOUT = int(os.environ.get('LDAP_TIMEOUT', '10'))
"""Seconds to wait for the directory to connect, and to answer."""

LDAP_LOGIN_ATTRIBUTES = _list(os.environ.get(
    'LDAP_LOGIN_ATTRIBUTES',
    'sAMAccountName,mail,userPrincipalName'
))
"""Attributes compared against the username entered on the login form."""

LDAP_GROUPS = _list(os.environ.get('LDAP_GROUPS', ''))
"""Group names, any of which authorizes a user. Empty authorizes everyone."""

AUTHZ_MATCH_ANY_OFFSET = bool(int(os.environ.get('AUTHZ_MATCH_ANY_OFFSET',
                                                 '0')))
"""Let a group name match at the start of a membership DN.

Off by default: the first occurrence of a group name must be after the first
character of the membership (e.g. ``admins`` matches ``CN=admins,...`` but
not ``admins,...`` or ``admins,CN=admins,...``).
"""

#################### Sessions ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')
REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing and development."""

JWT_SECRET = os.environ.get('JWT_SECRET') or \
    (secrets.token_urlsafe(16) if DEVELOPMENT else None)
"""Signs the session cookie. Required outside of development."""

SESSION_DURATION = os.environ.get('SESSION_DURATION', '36000')
SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME',
                                     'FORWARDAUTH_SESSION_ID')
SESSION_COOKIE_SECURE = bool(int(os.environ.get('SESSION_COOKIE_SECURE',
                                                '1')))

#################### Minor configs ####################
SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key. Not directly used by the gateway."""

LOGLEVEL = int(os.environ.get('LOGLEVEL', '20'))
LOG_JSON = bool(int(os.environ.get('LOG_JSON', '1')))

REQUIRED = ['LDAP_URL', 'LDAP_SEARCH_BASE', 'LDAP_BIND_DN']
"""Parameters without which the gateway will not start in production."""
