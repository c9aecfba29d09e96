# Overview: Flask API routes for login, logout, session checks and first-run setup.

# backend/retail_pos/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Login throttling to prevent brute-force attacks
- Account lockout after repeated failed attempts (HTTP 429)
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services import permission_service
from ..services.auth_service import AuthError, PasswordValidationError
from ..decorators import require_auth
from ..permissions import get_all_permission_codes, get_permission_definition
from .helpers import handle_errors, json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str | None = None) -> dict:
    payload = {
        "user": user.to_dict(),
        "tenant": user.tenant.to_dict() if user.tenant else None,
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "tenant_id": session.tenant_id,
        "expires_at": session.to_dict()["expires_at"],
    }
    if token is not None:
        payload["token"] = token
    return payload


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"email": "...", "password": "..."}

    SECURITY:
    - Checks for account lockout before attempting authentication
    - Records failed attempts for throttling
    - Records successful logins for audit trail
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400
        if not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "email and password must be strings"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
        if is_locked:
            minutes_remaining = (seconds_remaining // 60) + 1 if seconds_remaining else 15
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
                "retry_after_minutes": minutes_remaining,
            }), 429

        user = auth_service.authenticate(email, password)

        if not user:
            failed_count = login_throttle_service.record_failed_attempt(
                identifier=email,
                ip_address=ip_address,
                user_agent=user_agent,
                reason="Invalid credentials"
            )

            remaining = login_throttle_service.max_failed_attempts() - failed_count
            if remaining <= 0:
                return jsonify({
                    "error": "Account locked due to too many failed login attempts",
                    "locked": True,
                    "retry_after_minutes": 15,
                }), 429
            elif remaining <= 2:
                return jsonify({
                    "error": "Invalid credentials",
                    "warning": f"{remaining} attempts remaining before account lockout"
                }), 401
            return jsonify({"error": "Invalid credentials"}), 401

        login_throttle_service.record_successful_login(
            user,
            ip_address=ip_address,
            user_agent=user_agent
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )

        body = _session_payload(user, session, token)
        body["message"] = "Login successful"
        return jsonify(body), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/lockout-status/<identifier>")
def lockout_status_route(identifier: str):
    """Public lockout status so the login screen can show when to retry."""
    return jsonify(login_throttle_service.get_lockout_status(identifier))


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/validate")
@require_auth
def validate_route():
    """
    Validate session token and return user info with permissions.

    WHY: Frontend can check if token is still valid and get permissions
    for UI filtering (hiding nav items, buttons, etc.)
    """
    context = g.session_context
    body = _session_payload(context.user, context.session)
    body["message"] = "Token valid"
    return jsonify(body), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    context = g.session_context
    return jsonify(_session_payload(context.user, context.session)), 200


@auth_bp.get("/permissions")
@require_auth
def permissions_catalog_route():
    """
    Permission catalog grouped by category.

    Each entry carries a "granted" flag for the current user so the UI can
    hide actions the role cannot perform.
    """
    granted = permission_service.get_user_permissions(g.current_user.id)
    categories = {}
    for code in get_all_permission_codes():
        definition = get_permission_definition(code)
        definition["granted"] = code in granted
        categories.setdefault(definition["category"], []).append(definition)
    return jsonify({"role": g.current_user.role, "categories": categories}), 200


@auth_bp.post("/setup")
@handle_errors("Failed to set up tenant")
def setup_route():
    """
    First-run setup: create a business (tenant) and its admin user.

    Request body:
    {
        "business_name": "Corner Shop",
        "email": "owner@example.com",
        "full_name": "Shop Owner",
        "password": "Str0ng!pass",
        "currency": "KES"  (optional)
    }

    Returns 201 with a session token for the new admin.
    """
    data = json_body()
    try:
        tenant, user = auth_service.bootstrap_tenant(
            business_name=data.get("business_name"),
            email=data.get("email"),
            full_name=data.get("full_name"),
            password=data.get("password"),
            currency=data.get("currency"),
        )
    except (AuthError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    body = _session_payload(user, session, token)
    body["message"] = "Setup complete"
    return jsonify(body), 201
