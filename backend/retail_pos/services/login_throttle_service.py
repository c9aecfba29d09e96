"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the identifier is temporarily locked.

- Tracks failed attempts per email in the security_events table
- Lockout after LOGIN_MAX_FAILED_ATTEMPTS failures within LOCKOUT_WINDOW
- Lockout lasts LOCKOUT_DURATION from the most recent failure
"""

from datetime import timedelta
from flask import current_app
from ..extensions import db
from ..models import SecurityEvent, User
from retail_pos.time_utils import utcnow


DEFAULT_MAX_FAILED_ATTEMPTS = 5
LOCKOUT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=15)


def max_failed_attempts() -> int:
    return current_app.config.get("LOGIN_MAX_FAILED_ATTEMPTS", DEFAULT_MAX_FAILED_ATTEMPTS)


def _normalize(identifier: str) -> str:
    return (identifier or "").strip().lower()


def get_recent_failed_attempts(identifier: str) -> int:
    """
    Count failed login attempts for an identifier within LOCKOUT_WINDOW.

    The identifier is stored in the 'action' field of LOGIN_FAILED events.
    """
    cutoff = utcnow() - LOCKOUT_WINDOW

    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == _normalize(identifier),
        SecurityEvent.occurred_at >= cutoff
    ).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check if an identifier is currently locked out.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if get_recent_failed_attempts(identifier) < max_failed_attempts():
        return False, None

    most_recent = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == _normalize(identifier)
    ).order_by(SecurityEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials"
) -> int:
    """Record a failed login attempt. Returns the number of recent failures."""
    identifier = _normalize(identifier)
    user = db.session.query(User).filter(User.email == identifier).first()

    event = SecurityEvent(
        user_id=user.id if user else None,
        tenant_id=user.tenant_id if user else None,
        event_type="LOGIN_FAILED",
        resource="/api/auth/login",
        action=identifier,
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    current_app.logger.warning("Failed login for %s from %s", identifier, ip_address)
    return get_recent_failed_attempts(identifier)


def record_successful_login(
    user: User,
    ip_address: str | None = None,
    user_agent: str | None = None
) -> None:
    event = SecurityEvent(
        user_id=user.id,
        tenant_id=user.tenant_id,
        event_type="LOGIN_SUCCESS",
        resource="/api/auth/login",
        action=_normalize(user.email),
        success=True,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()


def get_lockout_status(identifier: str) -> dict:
    failed_count = get_recent_failed_attempts(identifier)
    is_locked, seconds_remaining = is_account_locked(identifier)

    return {
        "locked": is_locked,
        "failed_attempts": failed_count,
        "max_attempts": max_failed_attempts(),
        "seconds_until_unlock": seconds_remaining,
        "lockout_window_minutes": int(LOCKOUT_WINDOW.total_seconds() / 60),
        "lockout_duration_minutes": int(LOCKOUT_DURATION.total_seconds() / 60),
    }
