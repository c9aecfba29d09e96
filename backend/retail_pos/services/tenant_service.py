"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to a tenant, and cross-tenant access must be
explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.tenant_id set
2. IDs from client input are resolved only within g.tenant_id
3. Rows that exist in another tenant look exactly like missing rows (404)
4. Cross-tenant access attempts are logged as security events

USAGE:
    from retail_pos.services.tenant_service import get_in_tenant

    product = get_in_tenant(Product, product_id, tenant_id, label="Product")
"""

from flask import g, has_request_context, request
from ..extensions import db
from ..models import Tenant
from ..validation import NotFoundError, ValidationError, validate_payload, ModelValidationPolicy
from .concurrency import lock_for_update, run_with_retry
from .permission_service import log_security_event


TENANT_SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={"name", "currency", "low_stock_threshold", "tax_rate_bps"},
)


def get_in_tenant(model, row_id, tenant_id: int, *, label: str | None = None, lock: bool = False):
    """
    Load a tenant-owned row by id, or raise NotFoundError.

    SECURITY: Core tenant isolation check. If the id exists under another
    tenant, the attempt is logged and reported as "not found" so the other
    tenant's data is never revealed.

    lock=True applies SELECT ... FOR UPDATE (use inside a write operation).
    """
    label = label or model.__name__
    query = db.session.query(model).filter(model.id == row_id, model.tenant_id == tenant_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is not None:
        return row

    owner = db.session.query(model.tenant_id).filter(model.id == row_id).scalar()
    if owner is not None:
        _log_cross_tenant_attempt(
            f"{label} {row_id} belongs to tenant {owner}, not {tenant_id}",
            tenant_id=tenant_id,
        )
    raise NotFoundError(f"{label} not found")


def _log_cross_tenant_attempt(reason: str, tenant_id: int | None = None) -> None:
    """
    Log a cross-tenant access attempt as a security event.

    Discards any pending work of the failing operation first; the caller is
    about to raise.
    """
    db.session.rollback()

    user = getattr(g, 'current_user', None)
    user_id = user.id if user is not None and hasattr(user, 'id') else None
    in_request = has_request_context()

    log_security_event(
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        tenant_id=tenant_id,
    )


# =============================================================================
# Tenant settings
# =============================================================================

def get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        raise NotFoundError("Tenant not found")
    return tenant


def update_tenant_settings(tenant_id: int, payload: dict) -> Tenant:
    """Update name / currency / low_stock_threshold / tax_rate_bps."""
    patch = validate_payload(model=Tenant, payload=payload, policy=TENANT_SETTINGS_POLICY, partial=True)
    if "currency" in patch:
        patch["currency"] = patch["currency"].upper()
    if patch.get("low_stock_threshold") is not None and patch["low_stock_threshold"] < 0:
        raise ValidationError("low_stock_threshold must be >= 0")
    if patch.get("tax_rate_bps") is not None and not 0 <= patch["tax_rate_bps"] <= 10_000:
        raise ValidationError("tax_rate_bps must be between 0 and 10000")

    def _op():
        tenant = lock_for_update(db.session.query(Tenant).filter_by(id=tenant_id)).first()
        if not tenant:
            raise NotFoundError("Tenant not found")
        for key, value in patch.items():
            setattr(tenant, key, value)
        db.session.commit()
        return tenant

    return run_with_retry(_op)
