"""Provides an app factory for the gateway."""

from flask import Flask, jsonify
from werkzeug.exceptions import BadRequest, Forbidden, HTTPException, \
    InternalServerError, MethodNotAllowed, NotFound, Unauthorized

from . import config, routes
from .app_logging import setup_logger
from .exceptions import ConfigurationError
from .services import directory, session_store


def jsonify_exception(error: HTTPException):   # type: ignore
    exc_resp = error.get_response()
    response = jsonify(reason=error.description)
    response.status_code = exc_resp.status_code
    return response


def check_config(app: Flask) -> None:
    """Refuse to start without the parameters required to serve requests."""
    if not app.config.get('JWT_SECRET'):
        raise ConfigurationError('Missing required config: JWT_SECRET')
    if config.DEVELOPMENT:
        return
    missing = [key for key in app.config['REQUIRED']
               if not app.config.get(key)]
    if missing:
        raise ConfigurationError(f'Missing required config: {missing}')


def create_web_app() -> Flask:
    """Initialize and configure the gateway application."""
    app = Flask('forwardauth')
    app.config.from_pyfile('config.py')
    setup_logger(app.config['LOGLEVEL'], app.config['LOG_JSON'])

    directory.init_app(app)
    session_store.init_app(app)
    check_config(app)

    app.register_blueprint(routes.blueprint,
                           url_prefix=app.config['BASE_PATH'] or None)
    app.errorhandler(NotFound)(jsonify_exception)
    app.errorhandler(BadRequest)(jsonify_exception)
    app.errorhandler(Unauthorized)(jsonify_exception)
    app.errorhandler(Forbidden)(jsonify_exception)
    app.errorhandler(MethodNotAllowed)(jsonify_exception)
    app.errorhandler(InternalServerError)(jsonify_exception)
    return app
