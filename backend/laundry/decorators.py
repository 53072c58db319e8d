# Overview: Request decorators establishing operator context for API routes.

from functools import wraps
from flask import request, jsonify, g


ROLE_ADMIN = "admin"


def require_operator(f):
    """
    Require operator context supplied by the upstream session layer.

    Sets the following Flask g attributes:
    - g.operator_name: Operator identity (recorded on orders and payments)
    - g.branch_id: Branch scope for every read and write
    - g.operator_role: Role name (e.g. "admin", "staff")

    The headers are trusted: authentication happens before requests reach
    this service. Returns 401 when any of them is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        operator_name = (request.headers.get("X-Operator-Name") or "").strip()
        branch_header = (request.headers.get("X-Branch-Id") or "").strip()

        if not operator_name or not branch_header:
            return jsonify({"error": "Operator context required"}), 401

        try:
            branch_id = int(branch_header)
        except ValueError:
            return jsonify({"error": "Invalid operator context"}), 401

        g.operator_name = operator_name
        g.branch_id = branch_id
        g.operator_role = (request.headers.get("X-Operator-Role") or "staff").strip().lower()

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require the admin role. Must be applied after @require_operator.

    Returns 403 for any other role.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if getattr(g, "operator_role", None) != ROLE_ADMIN:
            return jsonify({"error": "Admin role required"}), 403
        return f(*args, **kwargs)

    return decorated_function
