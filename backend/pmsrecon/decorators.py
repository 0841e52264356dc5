# Overview: Request decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

IDENTITY_EXTENSION_KEY = "pms_identity"


class HeaderIdentityProvider:
    """
    Trusts the user id forwarded by the upstream auth gateway.

    Authentication and authorization live outside this service; all it
    needs is who recorded or approved something.
    """

    def __init__(self, header: str):
        self.header = header

    def resolve(self, req) -> str | None:
        value = (req.headers.get(self.header) or "").strip()
        return value or None


def get_identity_provider():
    provider = current_app.extensions.get(IDENTITY_EXTENSION_KEY)
    if provider is None:
        provider = HeaderIdentityProvider(current_app.config["PMS_IDENTITY_HEADER"])
        current_app.extensions[IDENTITY_EXTENSION_KEY] = provider
    return provider


def require_identity(f):
    """
    Resolve the acting user and store it on g.user_id.

    Returns 401 when the identity provider cannot name a user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = get_identity_provider().resolve(request)
        if not user_id:
            return jsonify({"is_success": False, "error": "Authentication required", "code": "UNAUTHORIZED"}), 401
        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated_function
