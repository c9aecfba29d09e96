# Overview: Password hashing, credential checks and tenant bootstrap.

"""
Authentication Service with Multi-Tenant Support

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

MULTI-TENANT: Users belong to exactly one tenant (tenant_id).
Email is the login identifier and is unique across tenants.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
- Authentication validates the tenant is active
"""

import bcrypt
import re
from flask import current_app
from ..extensions import db
from ..models import User, Tenant
from ..models.auth import ROLE_ADMIN, VALID_ROLES
from retail_pos.time_utils import utcnow
from .expense_service import seed_default_categories
from ..validation import optional_text


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthError(Exception):
    """Raised for account creation / bootstrap failures."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt (cost factor 12 unless overridden).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    bcrypt.checkpw() is timing-safe.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def _bcrypt_rounds() -> int:
    return current_app.config["BCRYPT_ROUNDS"]


def create_user(
    *,
    tenant_id: int,
    email: str,
    full_name: str,
    password: str,
    role: str,
    commit: bool = True,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        AuthError: tenant missing/inactive, bad role, or duplicate email
        PasswordValidationError: password doesn't meet requirements
    """
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        raise AuthError("Tenant not found")
    if not tenant.is_active:
        raise AuthError("Tenant is not active")

    if role not in VALID_ROLES:
        raise AuthError(f"Invalid role: {role}. Must be one of: {', '.join(VALID_ROLES)}")

    email = (optional_text(email, "email") or "").lower()
    full_name = optional_text(full_name, "full_name")
    if not email or "@" not in email:
        raise AuthError("A valid email is required")
    if not full_name:
        raise AuthError("full_name is required")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise AuthError("A user with this email already exists")

    user = User(
        tenant_id=tenant_id,
        email=email,
        full_name=full_name,
        role=role,
        password_hash=hash_password(password, rounds=_bcrypt_rounds()),
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid and tenant is active, None otherwise.
    Updates last_login_at on success.
    """
    email = (optional_text(email, "email") or "").lower()
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    tenant = db.session.query(Tenant).filter_by(id=user.tenant_id).first()
    if not tenant or not tenant.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def bootstrap_tenant(
    *,
    business_name: str,
    email: str,
    full_name: str,
    password: str,
    currency: str | None = None,
) -> tuple[Tenant, User]:
    """
    Create a tenant and its first admin user in one database transaction.

    Mirrors the first-run setup screen: new businesses start with a
    low-stock threshold of 10, the configured default currency and the
    default expense categories.
    """
    business_name = optional_text(business_name, "business_name")
    if not business_name:
        raise AuthError("business_name is required")

    validate_password_strength(password)

    email = (optional_text(email, "email") or "").lower()
    if db.session.query(User).filter_by(email=email).first():
        raise AuthError("A user with this email already exists")

    try:
        tenant = Tenant(
            name=business_name,
            currency=(currency or current_app.config.get("DEFAULT_CURRENCY", "KES")).upper(),
            low_stock_threshold=10,
        )
        db.session.add(tenant)
        db.session.flush()

        user = create_user(
            tenant_id=tenant.id,
            email=email,
            full_name=full_name,
            password=password,
            role=ROLE_ADMIN,
            commit=False,
        )
        seed_default_categories(tenant_id=tenant.id, commit=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Tenant %s bootstrapped with admin user %s", tenant.id, user.id)
    return tenant, user
