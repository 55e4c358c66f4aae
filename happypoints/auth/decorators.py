"""Decorators for authenticated routes."""

from functools import wraps

from firebase_admin import auth
from flask import current_app, g, request

from happypoints.errors import UnauthorizedError


def login_required(f):
    """Require a valid Firebase ID token and load the caller into ``g.user``.

    The client signs in with the Firebase SDK and sends its ID token as
    ``Authorization: Bearer <token>`` on every API request.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        scheme, _, id_token = header.partition(" ")
        if scheme.lower() != "bearer" or not id_token:
            raise UnauthorizedError()
        try:
            decoded_token = auth.verify_id_token(id_token)
        except (auth.InvalidIdTokenError, auth.CertificateFetchError, ValueError) as e:
            current_app.logger.warning(f"Rejected ID token: {e}")
            raise UnauthorizedError("Invalid or expired token.") from e

        email = decoded_token.get("email", "")
        g.user = {
            "uid": decoded_token["uid"],
            "email": email,
            "name": decoded_token.get("name") or email.split("@")[0],
        }
        return f(*args, **kwargs)

    return decorated_function
