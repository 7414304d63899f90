"""
Forward-authentication gateway for NGINX.

The gateway is a Flask application that answers authorization subrequests from
NGINX, and provides the login form that establishes a browser session.

Upon every request to a protected location, NGINX issues a sub-request (via
the `ngx_http_auth_request_module`) to ``<base>/check`` including the client's
cookies. The gateway looks up the browser session and returns 200 (OK) if the
session belongs to a user who is authorized, 401 (Unauthorized) if there is no
authenticated session, or 403 (Forbidden) if the user is authenticated but is
not a member of an allowed group. The check never contacts the directory.

When the answer is not 200, NGINX serves the login form from this gateway
while preserving the original location. The user submits their username (or
e-mail, or user principal name) and password; the gateway finds the account in
the LDAP directory using a service credential, verifies the password by
binding as that account, and records the account in a server-side session.
The user is then redirected to their original location, provided that it
belongs to one of the configured redirect domains.

Sessions live in redis (see :mod:`forwardauth.services.session_store`); the
session key is issued to the browser as a signed cookie.
"""
