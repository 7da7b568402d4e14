# Overview: Request, role and error-mapping decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request

from .services import session_service
from .validation import ConflictError, NotFoundError, TransientIOError, ValidationError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer session.

    Sets:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if the header is missing, the token is invalid or expired,
    or the user account was deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Restrict a route to the given roles. Admins pass every role check.

    Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            role = g.current_user.role
            if role != "admin" and role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def api_errors(f):
    """
    Map the service error taxonomy onto HTTP responses.

    Every failure means nothing was written; the body carries the reason:
    400 ValidationError, 404 NotFoundError, 409 ConflictError,
    503 TransientIOError, 500 for anything unexpected (logged).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            return jsonify({"error": str(e), "details": e.details}), 400
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except ConflictError as e:
            return jsonify({"error": str(e), "retryable": True}), 409
        except TransientIOError as e:
            return jsonify({"error": str(e), "retryable": True}), 503
        except Exception:
            current_app.logger.exception("Failed to handle %s %s", request.method, request.path)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function


def current_username() -> str | None:
    user = getattr(g, "current_user", None)
    return user.username if user is not None else None
