# Overview: Signed bearer tokens for API authentication.

"""
Bearer tokens are itsdangerous timed signatures over {"user_id": <id>},
keyed with the app SECRET_KEY. Nothing is stored server side; a token stays
valid until it reaches TOKEN_MAX_AGE_SECONDS or the key is rotated.
"""

from __future__ import annotations

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

TOKEN_SALT = "shopkeep-auth-token"


class TokenError(Exception):
    """Raised when a bearer token cannot be accepted."""


class TokenExpiredError(TokenError):
    pass


class TokenInvalidError(TokenError):
    pass


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(user_id: int) -> str:
    return _serializer().dumps({"user_id": user_id})


def verify_token(token: str, max_age: int | None = None) -> int:
    """
    Verify a token and return the user id it encodes.

    Raises TokenExpiredError or TokenInvalidError.
    """
    if max_age is None:
        max_age = current_app.config["TOKEN_MAX_AGE_SECONDS"]

    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise TokenExpiredError("Token has expired")
    except BadSignature:
        raise TokenInvalidError("Invalid token")

    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    if not isinstance(user_id, int):
        raise TokenInvalidError("Invalid token")
    return user_id
