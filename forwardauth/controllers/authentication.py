"""
Controllers for the forward-authentication gateway.

NGINX asks :func:`check_access` about every request. The answer depends only
on the browser session: 401 if nobody has logged in, 200 if the user who
logged in belongs to an allowed group, and 403 if they do not. Group
membership is re-evaluated on every check against the record stored at login;
the directory is not consulted.

:func:`login` validates credentials against the directory and attaches the
user to the session, and :func:`logout` destroys the session.
"""

from http import HTTPStatus as status
from typing import Any, Dict, Iterable, Optional, Tuple

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import InternalServerError
from wtforms import Form, HiddenField, PasswordField, StringField
from wtforms.validators import DataRequired, InputRequired

import logging

from .. import config
from ..authorization import authorize
from ..domain import LoginOutcome, SessionState, UserRecord
from ..exceptions import DirectoryUnavailable, InvalidCredentials
from ..next_page import resolve_redirect
from ..services.exceptions import SessionCreationFailed
from ..services.session_store import Session
from ..services.users import UserDirectory

logger = logging.getLogger(__name__)

ResponseData = Tuple[Dict[str, Any], int, Dict[str, str]]

INVALID_CREDENTIALS = 'Invalid username or password.'

DEV_USERNAME = 'test'
DEV_PASSWORD = 'test'


class LoginForm(Form):
    """Log in form."""

    username = StringField('Username or e-mail', validators=[DataRequired()])
    password = PasswordField('Password', validators=[InputRequired()])
    request_uri = HiddenField('Return to')


def classify(session: Session, groups: Iterable[str],
             match_any_offset: bool = False) -> SessionState:
    """Determine the state of ``session`` with respect to ``groups``."""
    user = session.get_user()
    if user is None:
        return SessionState.ANONYMOUS
    if authorize(user, groups, match_any_offset=match_any_offset):
        return SessionState.AUTHENTICATED
    return SessionState.AUTHENTICATED_UNAUTHORIZED


def check_access(session: Session, groups: Iterable[str],
                 match_any_offset: bool = False) -> ResponseData:
    """
    Decide whether NGINX should let the request through.

    Parameters
    ----------
    session : :class:`.Session`
    groups : iterable
        Allowed group names. If empty, any authenticated user is allowed.
    match_any_offset : bool
        See :func:`.authorize`.

    Returns
    -------
    dict
        Always empty.
    int
        200 if the user is authorized, 401 if there is no user, 403 if the
        user is not authorized.
    dict
        Headers to add to the response.

    """
    state = classify(session, groups, match_any_offset)
    code = {
        SessionState.ANONYMOUS: status.UNAUTHORIZED,
        SessionState.AUTHENTICATED: status.OK,
        SessionState.AUTHENTICATED_UNAUTHORIZED: status.FORBIDDEN
    }[state]
    logger.debug('/check %i', code)
    return {}, code, {'Cache-Control': 'no-cache'}


def attempt_login(identifier: str, secret: str,
                  directory: Optional[UserDirectory]) -> LoginOutcome:
    """
    Validate credentials, and get the corresponding user.

    Failures all carry the same message, whether the user was not found, the
    password was wrong, or the directory could not be reached.

    Parameters
    ----------
    identifier : str
        Username, e-mail address, or user principal name.
    secret : str
        Password (as entered).
    directory : :class:`.UserDirectory` or None

    Returns
    -------
    :class:`.LoginOutcome`

    """
    logger.debug('Authenticating: %s', identifier)
    if config.DEVELOPMENT and identifier == DEV_USERNAME:
        if secret == DEV_PASSWORD:
            logger.debug('DEV: Authentication successful.')
            return LoginOutcome(user=UserRecord(dn='', username=identifier,
                                                display_name=identifier))
        logger.debug('DEV: Authentication unsuccessful.')
        return LoginOutcome(error=INVALID_CREDENTIALS)

    try:
        user = _authenticate(identifier, secret, directory)
    except InvalidCredentials as e:
        logger.info('Authentication unsuccessful for %s: %s', identifier, e)
        return LoginOutcome(error=INVALID_CREDENTIALS)
    logger.info('Authentication successful for %s', identifier)
    return LoginOutcome(user=user)


def _authenticate(identifier: str, secret: str,
                  directory: Optional[UserDirectory]) -> UserRecord:
    if directory is None:
        raise InvalidCredentials('Directory is not configured')
    try:
        users = directory.find_user(identifier)
    except DirectoryUnavailable as e:
        logger.error('Directory unavailable: %s', e)
        raise InvalidCredentials('Unable to search the directory') from e
    if not users:
        raise InvalidCredentials('User not found')
    if len(users) > 1:
        logger.info('%i accounts match %s; using %s', len(users), identifier,
                    users[0].dn)
    user = users[0]
    if not directory.authenticate(user, secret):
        raise InvalidCredentials('Bind failed')
    return user._replace(username=identifier)


def login(form_data: MultiDict, session: Session,
          directory: Optional[UserDirectory], redirect_domains: Iterable[str],
          default_next_page: str) -> ResponseData:
    """
    Log the user in.

    Parameters
    ----------
    form_data : MultiDict
        Should include `username` and `password` data, and optionally
        `request_uri`.
    session : :class:`.Session`
    directory : :class:`.UserDirectory` or None
    redirect_domains : iterable
        Domains to which the user may be sent after login.
    default_next_page : str
        Where the user goes after login if `request_uri` is absent or not
        allowed.

    Returns
    -------
    dict
        Additional data to add to the response.
    int
        Status code. This should be 302 (Found) if all goes well.
    dict
        Headers to add to the response.

    """
    logger.debug('Login form submitted')
    form = LoginForm(form_data)
    data: Dict[str, Any] = {'form': form, 'error': None}
    if not form.validate():
        logger.debug('Form data is not valid')
        data.update({'error': INVALID_CREDENTIALS})
        return data, status.BAD_REQUEST, {}

    outcome = attempt_login(form.username.data, form.password.data,
                            directory)
    if not outcome.authenticated:
        data.update({'error': outcome.error})
        return data, status.BAD_REQUEST, {}

    try:
        session.set_user(outcome.user)
    except SessionCreationFailed as e:
        logger.error('Could not create session: %s', e)
        raise InternalServerError('Cannot log in') from e

    next_page = resolve_redirect(form.request_uri.data, redirect_domains,
                                 default_next_page)
    return data, status.FOUND, {'Location': next_page}


def logout(session: Session, next_page: str) -> ResponseData:
    """
    Log the user out, and redirect to ``next_page``.

    Returns
    -------
    dict
        Additional data to add to the response.
    int
        Status code. This should be 302 (Found).
    dict
        Headers to add to the response.

    """
    logger.debug('Destroying authentication credentials.')
    session.destroy()
    return {}, status.FOUND, {'Location': next_page}


def landing(session: Session, request_uri: Optional[str] = None) \
        -> ResponseData:
    """Show the logged-in user, or the login form."""
    user = session.get_user()
    form = LoginForm(request_uri=request_uri)
    return {'user': user, 'form': form, 'error': None}, status.OK, {}
