# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import Actor
from .services import session_service


def require_auth(f):
    """
    Require a valid bearer token and establish the caller.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.actor: The Actor (role + username) passed into every service call
    - g.session_token: The plaintext token, for logout

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated or carrying an unknown role
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

        token = auth_header.split(" ", 1)[1]

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token", "code": "UNAUTHENTICATED"}), 401

        try:
            actor = Actor.from_user(user)
        except ValueError:
            return jsonify({"error": "Account has no valid role", "code": "UNAUTHENTICATED"}), 401

        g.current_user = user
        g.actor = actor
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function
