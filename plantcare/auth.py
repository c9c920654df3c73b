"""Bearer-token authentication for the API.

Tokens are issued by Flask-JWT-Extended and verified here against an
ordered list of signing keys (the primary ``JWT_SECRET_KEY`` followed by
any configured additional keys). A ``kid`` header selects one key directly.
"""
import secrets
from collections import namedtuple
from functools import wraps

import jwt as pyjwt
from flask import current_app, g, request
from flask_jwt_extended import create_access_token

from .errors import AuthenticationError
from .models import db, User

TEST_TOKEN_PREFIX = "test-token-"
TEST_USER_EMAIL = "test@example.com"
TEST_USER_NAME = "Test User"

CurrentUser = namedtuple("CurrentUser", ["id", "email", "name"])


def signing_keys(config=None):
    config = config or current_app.config
    keys = [("primary", config["JWT_SECRET_KEY"])]
    keys.extend(config.get("JWT_ADDITIONAL_SECRET_KEYS") or [])
    return keys


def issue_token(user):
    return create_access_token(identity=str(user.id))


def verify_token(token, keys):
    """Decode ``token`` with the first key in ``keys`` that verifies it.

    Raises the error from the first attempt when none verify.
    """
    try:
        kid = pyjwt.get_unverified_header(token).get("kid")
    except pyjwt.InvalidTokenError:
        kid = None
    if kid:
        selected = [k for k in keys if k[0] == kid]
        if selected:
            keys = selected

    first_error = None
    for name, secret in keys:
        try:
            return pyjwt.decode(token, secret, algorithms=["HS256"])
        except pyjwt.InvalidTokenError as e:
            if first_error is None:
                first_error = e
            current_app.logger.debug("Token verification with key %s failed: %s", name, e)
    raise first_error or pyjwt.InvalidTokenError("No signing keys configured")


def bearer_token():
    header = request.headers.get("Authorization")
    if not header:
        return None
    return header.replace("Bearer ", "", 1).strip()


def _test_user():
    user = User.query.filter_by(email=TEST_USER_EMAIL).first()
    if user is None:
        user = User(name=TEST_USER_NAME, email=TEST_USER_EMAIL)
        # Random password: the account is only reachable through test tokens.
        user.set_password(secrets.token_urlsafe(32))
        db.session.add(user)
        db.session.commit()
    return user


def user_from_token(token):
    """Resolve a raw token to a ``User`` or raise ``AuthenticationError``."""
    if current_app.config.get("ALLOW_TEST_TOKENS") and token.startswith(TEST_TOKEN_PREFIX):
        current_app.logger.info("Using test token for development")
        return _test_user()

    try:
        decoded = verify_token(token, signing_keys())
    except pyjwt.InvalidTokenError as e:
        raise AuthenticationError("Please authenticate", details=str(e))

    user_id = decoded.get("sub") or decoded.get("id")
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        user = None
    if user is None:
        raise AuthenticationError("Please authenticate", details="User not found")
    return user


def auth_required(f):
    """Decorator to require a valid bearer token"""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = bearer_token()
        try:
            if not token:
                raise AuthenticationError("Please authenticate", details="No Authorization header provided")
            user = user_from_token(token)
        except AuthenticationError as e:
            current_app.logger.warning("Authentication error: %s", e.details)
            raise
        g.current_user = CurrentUser(user.id, user.email, user.name)
        g.token = token
        return f(*args, **kwargs)
    return decorated


def current_user_id():
    return g.current_user.id
