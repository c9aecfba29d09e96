# Overview: Pytest coverage for login, lockout, logout and first-run setup.

from retail_pos.models import ExpenseCategory, SecurityEvent, SessionToken, Tenant, User

from conftest import PASSWORD, auth_headers, login


class TestLogin:
    def test_login_returns_token_and_permissions(self, client, admin_a):
        response = login(client, "admin@acme.test")

        assert response.status_code == 200
        body = response.json
        assert body["token"]
        assert body["user"]["email"] == "admin@acme.test"
        assert body["tenant_id"] == admin_a.tenant_id
        assert "MANAGE_PRODUCTS" in body["permissions"]

    def test_login_email_is_case_insensitive(self, client, admin_a):
        response = login(client, "  ADMIN@Acme.test ")
        assert response.status_code == 200

    def test_wrong_password_is_rejected(self, client, admin_a):
        response = login(client, "admin@acme.test", "Wrong123!")
        assert response.status_code == 401
        assert response.json["error"] == "Invalid credentials"

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/auth/login", json={"email": "x@y.test"})
        assert response.status_code == 400

    def test_non_string_credentials(self, client, db_session):
        response = client.post("/api/auth/login", json={"email": ["x@y.test"], "password": 12345678})
        assert response.status_code == 400

    def test_inactive_user_cannot_login(self, client, db_session, admin_a):
        admin_a.is_active = False
        db_session.commit()
        assert login(client, "admin@acme.test").status_code == 401

    def test_warning_when_few_attempts_remain(self, client, admin_a):
        for _ in range(2):
            login(client, "admin@acme.test", "Wrong123!")
        response = login(client, "admin@acme.test", "Wrong123!")
        assert response.status_code == 401
        assert "attempts remaining" in response.json["warning"]


class TestLockout:
    def test_locked_after_max_failed_attempts(self, client, admin_a):
        responses = [login(client, "admin@acme.test", "Wrong123!") for _ in range(5)]
        assert [r.status_code for r in responses[:4]] == [401] * 4
        assert responses[4].status_code == 429

        # Correct password is refused while locked
        response = login(client, "admin@acme.test")
        assert response.status_code == 429
        assert response.json["locked"] is True
        assert response.json["retry_after_seconds"] > 0

    def test_lockout_status_endpoint(self, client, admin_a):
        for _ in range(5):
            login(client, "admin@acme.test", "Wrong123!")
        response = client.get("/api/auth/lockout-status/admin@acme.test")
        assert response.status_code == 200
        assert response.json["locked"] is True

    def test_failed_attempts_are_logged(self, client, db_session, admin_a):
        login(client, "admin@acme.test", "Wrong123!")
        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.user_id == admin_a.id
        assert event.action == "admin@acme.test"


class TestSessions:
    def test_request_without_token_is_unauthorized(self, client, db_session):
        assert client.get("/api/products").status_code == 401

    def test_me_returns_current_user(self, client, admin_a):
        response = client.get("/api/auth/me", headers=auth_headers(admin_a))
        assert response.status_code == 200
        assert response.json["user"]["id"] == admin_a.id

    def test_logout_revokes_token(self, client, db_session, admin_a):
        headers = auth_headers(admin_a)
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/validate", headers=headers).status_code == 401
        assert db_session.query(SessionToken).filter_by(is_revoked=True).count() == 1

    def test_deactivated_tenant_invalidates_session(self, client, db_session, admin_a, tenant_a):
        headers = auth_headers(admin_a)
        tenant_a.is_active = False
        db_session.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401


class TestSetup:
    def test_setup_creates_tenant_admin_and_categories(self, client, db_session):
        response = client.post("/api/auth/setup", json={
            "business_name": "Corner Shop",
            "email": "Owner@Corner.test",
            "full_name": "Shop Owner",
            "password": PASSWORD,
            "currency": "ugx",
        })

        assert response.status_code == 201
        assert response.json["token"]
        tenant = db_session.query(Tenant).filter_by(name="Corner Shop").one()
        assert tenant.currency == "UGX"
        assert tenant.low_stock_threshold == 10

        user = db_session.query(User).filter_by(email="owner@corner.test").one()
        assert user.role == "admin"
        assert user.tenant_id == tenant.id

        names = {c.name for c in db_session.query(ExpenseCategory).filter_by(tenant_id=tenant.id)}
        assert {"Rent", "Utilities", "Salaries", "Supplies", "Transport", "Other"} <= names

    def test_setup_rejects_weak_password(self, client, db_session):
        response = client.post("/api/auth/setup", json={
            "business_name": "Weak Shop",
            "email": "weak@shop.test",
            "full_name": "Weak",
            "password": "password",
        })
        assert response.status_code == 400
        assert db_session.query(Tenant).count() == 0

    def test_setup_rejects_non_string_business_name(self, client, db_session):
        response = client.post("/api/auth/setup", json={
            "business_name": 42,
            "email": "owner@corner.test",
            "full_name": "Shop Owner",
            "password": PASSWORD,
        })
        assert response.status_code == 400
        assert db_session.query(Tenant).count() == 0

    def test_setup_rejects_duplicate_email(self, client, admin_a):
        response = client.post("/api/auth/setup", json={
            "business_name": "Second Shop",
            "email": "admin@acme.test",
            "full_name": "Someone",
            "password": PASSWORD,
        })
        assert response.status_code == 400
