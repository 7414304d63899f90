"""Provides Flask integration for the gateway."""

from datetime import timedelta
from http import HTTPStatus as status

from flask import Blueprint, Response, current_app, make_response, \
    redirect, render_template, request

import logging

from .controllers import authentication
from .services import session_store, users
from .services.session_store import Session

logger = logging.getLogger(__name__)
blueprint = Blueprint('forwardauth', __name__, url_prefix='')


def get_session() -> Session:
    """Load the session named by the request cookie, or start one."""
    cookie_name = current_app.config['SESSION_COOKIE_NAME']
    store = session_store.current_store()
    return store.load_or_new(request.cookies.get(cookie_name))


def set_cookies(response: Response, session: Session) -> None:
    """
    Update a :class:`.Response` with the session cookie.

    Only sessions that were logged in or destroyed during the request touch
    the cookie.
    """
    if not session.modified:
        return None
    cookie_name = current_app.config['SESSION_COOKIE_NAME']
    params = dict(httponly=True, path='/', samesite='Lax')
    if current_app.config['SESSION_COOKIE_SECURE']:
        params.update({'secure': True})
    if not session.persisted:
        logger.debug('Unset cookie %s', cookie_name)
        response.set_cookie(cookie_name, '', max_age=0, **params)
        return None
    store = session_store.current_store()
    max_age = timedelta(seconds=store.duration)
    logger.debug('Set cookie %s, max_age %s', cookie_name, max_age)
    response.set_cookie(cookie_name, store.generate_cookie(session),
                        max_age=max_age, **params)


def base_path() -> str:
    """The path at which the gateway is mounted."""
    return current_app.config['BASE_PATH'] or '/'


def render(data: dict, code: int, headers: dict) -> Response:
    """Render the authenticated page, or the login form."""
    template = 'forwardauth/login.html'
    if data.get('user') is not None:
        template = 'forwardauth/authenticated.html'
    return make_response(render_template(template, base_path=base_path(),
                                         **data), code, headers)


@blueprint.after_request
def apply_response_headers(response: Response) -> Response:
    """Prevent UI redress attacks."""
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    response.headers['X-Frame-Options'] = 'DENY'
    return response


@blueprint.route('/check', methods=['GET'])
def check() -> Response:
    """Answer an authorization subrequest from NGINX."""
    session = get_session()
    _, code, headers = authentication.check_access(
        session,
        current_app.config['LDAP_GROUPS'],
        current_app.config['AUTHZ_MATCH_ANY_OFFSET']
    )
    return make_response('', code, headers)


@blueprint.route('/', methods=['GET', 'POST'], strict_slashes=False)
def login() -> Response:
    """User can log in with username and password."""
    session = get_session()
    if request.method == 'GET':
        data, code, headers = authentication.landing(
            session, request.args.get('request_uri')
        )
        return render(data, code, headers)

    data, code, headers = authentication.login(
        request.form,
        session,
        users.current_directory(),
        current_app.config['REDIRECT_DOMAINS'],
        current_app.config['DEFAULT_LOGIN_REDIRECT_URL']
    )
    # Flask puts cookie-setting methods on the response, so we do that here
    # instead of in the controller.
    if code == status.FOUND:
        response = make_response(redirect(headers['Location'], code=code))
        set_cookies(response, session)
        return response

    # Form is invalid, or login failed.
    return render(data, code, headers)


@blueprint.route('/logout', methods=['GET'])
def logout() -> Response:
    """Destroy the session."""
    session = get_session()
    data, code, headers = authentication.logout(session, base_path())
    response = make_response(redirect(headers['Location'], code=code))
    set_cookies(response, session)
    return response


@blueprint.route('/status', methods=['GET'])
def auth_status() -> Response:
    """Get if the app is running."""
    return make_response('OK')


@blueprint.route('/<path:path>', methods=['GET'])
def fallback(path: str) -> Response:
    """Show the logged-in user, or the login form."""
    session = get_session()
    data, code, headers = authentication.landing(
        session, request.args.get('request_uri')
    )
    return render(data, code, headers)
