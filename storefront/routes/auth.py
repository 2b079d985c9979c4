import hmac
import logging
from functools import wraps
from flask import request, jsonify
from storefront.config import load_settings

logger = logging.getLogger(__name__)


def require_admin(f):
    """
    Access control decorator for store administration routes.

    Expects `Authorization: Bearer <ADMIN_API_TOKEN>`. When no admin token is
    configured every request is refused, so admin routes are closed by default.

    Args:
        f: The route handler function to be protected.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"success": False, "error": "Missing or invalid Authorization header"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        expected = load_settings().ADMIN_API_TOKEN
        if not expected or not hmac.compare_digest(token.encode(), expected.encode()):
            logger.warning(f"Rejected admin request to {request.path}")
            return jsonify({"success": False, "error": "Insufficient permissions"}), 403

        return f(*args, **kwargs)
    return decorated
