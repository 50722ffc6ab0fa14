# Overview: Request decorators for API routes: authentication, role checks and idempotent replay.

from functools import wraps

from flask import current_app, g, jsonify, make_response, request
from sqlalchemy.exc import SQLAlchemyError

from .errors import FlowStockError, error_response
from .models import Role
from .services import idempotency_service, session_service
from .services.audit_service import Actor

ROLE_RANK = {
    Role.VIEWER.value: 1,
    Role.OPERATOR.value: 2,
    Role.ADMIN.value: 3,
}


def current_actor() -> Actor:
    return Actor.from_user(g.current_user)


def require_auth(f):
    """
    Require a valid bearer access token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: user + AuthSession

    Returns 401 if the header is missing, or the token is unknown, expired
    or revoked, or the user is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_access_token(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(minimum: Role):
    """
    Require the authenticated user's role to be at least `minimum`.

    ADMIN > OPERATOR > VIEWER. Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            if ROLE_RANK.get(g.current_user.role, 0) < ROLE_RANK[minimum.value]:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": minimum.value,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def idempotent(f):
    """
    Replay-safe POST handling keyed by the Idempotency-Key header.

    Requests without the header run normally. With it, the first request's
    successful response is stored and returned verbatim to any retry from the
    same user on the same endpoint (with an Idempotent-Replayed: true header).
    Must be stacked below @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get("IDEMPOTENCY_ENABLED", True):
            return f(*args, **kwargs)

        try:
            key = idempotency_service.normalize_key(request.headers.get("Idempotency-Key"))
            if key is None:
                return f(*args, **kwargs)

            claim = idempotency_service.claim(
                actor=g.current_user.username,
                endpoint_key=f"{request.method} {request.path}",
                key=key,
            )
        except FlowStockError as e:
            return error_response(e)

        replay = claim.replay
        if replay is not None:
            body, status = replay
            response = make_response(jsonify(body), status)
            response.headers["Idempotent-Replayed"] = "true"
            return response

        record_id = claim.record.id
        try:
            response = make_response(f(*args, **kwargs))
        except Exception:
            idempotency_service.release(record_id)
            raise

        try:
            if response.status_code < 400 and response.is_json:
                idempotency_service.complete(
                    record_id,
                    status_code=response.status_code,
                    body=response.get_json(),
                )
            else:
                idempotency_service.release(record_id)
        except SQLAlchemyError:
            # The business change is already committed; answer with it and free the key
            current_app.logger.exception("Failed to store idempotent response for key %s", key)
            _release_after_failure(record_id)
        return response

    return decorated_function


def _release_after_failure(record_id: int) -> None:
    try:
        idempotency_service.release(record_id)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to release idempotency key id=%s", record_id)
