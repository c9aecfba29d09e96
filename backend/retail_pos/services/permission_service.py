# Overview: Role-based permission checks and the security event audit trail.

"""
Permission Checking and Security Event Logging with Multi-Tenant Support

WHY: Enforce role-based access control and create audit trail.

Roles are a column on User ("admin" / "sales_person"); the permission set
for each role comes from retail_pos.permissions.DEFAULT_ROLE_PERMISSIONS.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and inactive users have no permissions
- Log denials only: permission grants are not logged
- Tenant isolation: security events carry tenant_id
"""

from ..extensions import db
from ..models import User, SecurityEvent
from ..permissions import get_role_permissions
from retail_pos.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED / LOGIN_SUCCESS
    - LOGOUT
    - USER_CREATED / USER_DELETED / PASSWORD_CHANGED
    - TENANT_CONTEXT_MISSING
    - CROSS_TENANT_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        tenant_id=tenant_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user.

    Returns set of permission codes (e.g., {"CREATE_SALE", "VIEW_PRODUCTS"}).
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user or not user.is_active:
        return set()
    return get_role_permissions(user.role)


def user_has_permission(user_id: int, permission_code: str) -> bool:
    """Check if user has a specific permission."""
    return permission_code in get_user_permissions(user_id)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are logged to security_events with the tenant context.

    Usage:
        require_permission(user.id, "CREATE_SALE", resource="/api/transactions", tenant_id=g.tenant_id)
    """
    if not user_has_permission(user_id, permission_code):
        log_security_event(
            user_id=user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource,
            action=permission_code,
            reason=f"Missing permission: {permission_code}",
            ip_address=ip_address,
            user_agent=user_agent,
            tenant_id=tenant_id,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")
