"""
Bearer access tokens for API clients

Tokens are signed with the app secret (itsdangerous, as Flask does for its
session cookie) and carry only the user id. Every request that presents
one is turned into an AuthSession before it reaches a route.
"""

import logging
from collections import namedtuple
from datetime import datetime, timedelta, timezone

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

logger = logging.getLogger(__name__)

TOKEN_SALT = "perfect-slate-access-token"

AuthSession = namedtuple("AuthSession", ["user_id", "access_token", "expires_at"])


def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def _max_age():
    return current_app.config.get("ACCESS_TOKEN_MAX_AGE", 86400)


def issue_access_token(user):
    """Sign a new access token for a user"""
    token = _serializer().dumps({"uid": user.id})
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=_max_age())
    return AuthSession(user.id, token, expires_at)


def load_auth_session(token):
    """
    Validate an access token.

    Returns:
        AuthSession or None if the token is missing, forged or expired
    """
    if not token:
        return None

    try:
        payload, issued_at = _serializer().loads(
            token, max_age=_max_age(), return_timestamp=True
        )
    except SignatureExpired:
        logger.info("Rejected expired access token")
        return None
    except BadSignature:
        logger.warning("Rejected access token with bad signature")
        return None

    user_id = payload.get("uid") if isinstance(payload, dict) else None
    if not isinstance(user_id, int):
        return None

    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return AuthSession(user_id, token, issued_at + timedelta(seconds=_max_age()))


def bearer_token(request):
    """Token from an 'Authorization: Bearer ...' header"""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def auth_session_from_request(request):
    return load_auth_session(bearer_token(request))
