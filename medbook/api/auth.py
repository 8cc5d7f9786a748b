"""
JWT authentication helpers and middleware for the Flask API.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Dict, Any, Optional

import jwt
from flask import current_app, request, jsonify

from medbook.config import SECRET_KEY, TOKEN_EXPIRY_HOURS, UNAUTHORIZED_MESSAGE
from medbook.models import UserProfile

# In-memory session store (use Redis in production)
# Structure: {token: {"user_id": int, "role": str, "created_at": datetime, "last_activity": datetime}}
sessions: Dict[str, Dict[str, Any]] = {}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _secret() -> str:
    return current_app.config.get("SECRET_KEY") or SECRET_KEY


def generate_token(profile: UserProfile) -> str:
    """Generate a JWT token for an authenticated user."""
    payload = {
        "user_id": profile.id,
        "role": profile.role.value,
        "email": profile.email,
        "iat": utc_now(),
        "exp": utc_now() + timedelta(hours=TOKEN_EXPIRY_HOURS),
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def open_session(profile: UserProfile) -> str:
    """Issue a token for *profile* and register it in the session store."""
    token = generate_token(profile)
    sessions[token] = {
        "user_id": profile.id,
        "role": profile.role.value,
        "created_at": utc_now(),
        "last_activity": utc_now(),
    }
    return token


def token_required(f):
    """Decorator that protects endpoints with JWT authentication."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None

        # Check Authorization header (Bearer token)
        if "Authorization" in request.headers:
            auth_header = request.headers["Authorization"]
            try:
                token = auth_header.split(" ")[1]
            except IndexError:
                return jsonify({"error": UNAUTHORIZED_MESSAGE}), 401

        # Fallback: query params
        if not token:
            token = request.args.get("token")

        if not token:
            return jsonify({"error": UNAUTHORIZED_MESSAGE}), 401

        cleanup_expired_sessions()

        payload = verify_token(token)
        if not payload or token not in sessions:
            return jsonify({"error": UNAUTHORIZED_MESSAGE}), 401

        session_data = sessions[token]
        session_data["last_activity"] = utc_now()

        # Attach session data to the request context
        request.session_data = session_data
        request.token = token

        return f(*args, **kwargs)

    return decorated


def cleanup_expired_sessions():
    """Remove sessions that have been inactive beyond TOKEN_EXPIRY_HOURS."""
    now = utc_now()
    expired = [
        tok for tok, data in sessions.items()
        if (now - data["last_activity"]).total_seconds() > TOKEN_EXPIRY_HOURS * 3600
    ]
    for tok in expired:
        del sessions[tok]
    if expired:
        print(f"[cleanup] Removed {len(expired)} expired sessions")
    return len(expired)
