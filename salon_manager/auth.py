"""Bearer-token helpers for the API."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

_TOKEN_SALT = "auth-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_TOKEN_SALT)


def build_token(payload: dict[str, object]) -> str:
    return _serializer().dumps(payload)


def get_token_identity() -> int | None:
    """Extract the profile id from the Authorization header token.

    Returns ``None`` when the header is missing, malformed, tampered with or
    expired.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header[7:]  # Remove "Bearer " prefix

    try:
        payload = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except BadSignature:
        return None

    if not isinstance(payload, dict):
        return None
    return payload.get("profile_id")


def login_required(view):
    """Reject the request with 401 unless it carries a valid token.

    The authenticated profile id is exposed as ``g.profile_id``.
    """

    @wraps(view)
    def wrapped(*args, **kwargs):
        profile_id = get_token_identity()
        if profile_id is None:
            return jsonify({"error": "unauthorized", "message": "a valid bearer token is required"}), 401
        g.profile_id = profile_id
        return view(*args, **kwargs)

    return wrapped
