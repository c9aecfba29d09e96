# Overview: Pytest coverage for tenant user administration and password changes.

import pytest

from retail_pos.models import SessionToken, User
from retail_pos.services import transaction_service, user_service
from retail_pos.services.user_service import UserError

from conftest import auth_headers, login, PASSWORD

NEW_PASSWORD = "Changed456$"


class TestUserAdmin:
    def test_list_is_tenant_scoped(self, client, admin_a, sales_a, admin_b):
        resp = client.get("/api/users", headers=auth_headers(admin_a))

        assert resp.status_code == 200
        emails = {u["email"] for u in resp.json["items"]}
        assert emails == {"admin@acme.test", "sales@acme.test"}
        assert all("password_hash" not in u for u in resp.json["items"])

    def test_create_defaults_to_sales_person(self, client, admin_a):
        resp = client.post("/api/users", headers=auth_headers(admin_a), json={
            "email": "Cashier@Acme.test",
            "full_name": "Till Two",
            "password": PASSWORD,
        })

        assert resp.status_code == 201
        assert resp.json["role"] == "sales_person"
        assert resp.json["email"] == "cashier@acme.test"
        assert login(client, "cashier@acme.test").status_code == 200

    def test_duplicate_email_rejected(self, client, admin_a, admin_b):
        resp = client.post("/api/users", headers=auth_headers(admin_a), json={
            "email": "admin@beta.test",
            "full_name": "Copycat",
            "password": PASSWORD,
        })
        assert resp.status_code == 400

    def test_weak_password_rejected(self, client, admin_a):
        resp = client.post("/api/users", headers=auth_headers(admin_a), json={
            "email": "weak@acme.test",
            "full_name": "Weak",
            "password": "password",
        })
        assert resp.status_code == 400

    def test_other_tenant_user_is_404(self, client, admin_a, admin_b):
        assert client.get(f"/api/users/{admin_b.id}", headers=auth_headers(admin_a)).status_code == 404

    def test_sales_person_cannot_manage_users(self, client, sales_a):
        assert client.get("/api/users", headers=auth_headers(sales_a)).status_code == 403


class TestSelfProtection:
    def test_cannot_delete_self(self, client, admin_a):
        resp = client.delete(f"/api/users/{admin_a.id}", headers=auth_headers(admin_a))
        assert resp.status_code == 400
        assert resp.json["error"] == "You cannot delete your own account"

    def test_cannot_demote_self(self, tenant_a, admin_a):
        with pytest.raises(UserError, match="You cannot change your own role"):
            user_service.update_user(
                tenant_id=tenant_a.id, user_id=admin_a.id,
                payload={"role": "sales_person"}, acting_user_id=admin_a.id,
            )

    def test_cannot_deactivate_self(self, tenant_a, admin_a):
        with pytest.raises(UserError, match="You cannot deactivate your own account"):
            user_service.update_user(
                tenant_id=tenant_a.id, user_id=admin_a.id,
                payload={"is_active": False}, acting_user_id=admin_a.id,
            )

    def test_unknown_field_rejected(self, client, admin_a, sales_a):
        resp = client.patch(f"/api/users/{sales_a.id}", headers=auth_headers(admin_a), json={"email": "x@y.z"})
        assert resp.status_code == 400


class TestDeactivateAndDelete:
    def test_deactivation_revokes_sessions(self, client, db_session, admin_a, sales_a):
        sales_headers = auth_headers(sales_a)
        assert client.get("/api/auth/me", headers=sales_headers).status_code == 200

        resp = client.patch(f"/api/users/{sales_a.id}", headers=auth_headers(admin_a), json={"is_active": False})

        assert resp.status_code == 200
        assert resp.json["is_active"] is False
        assert client.get("/api/auth/me", headers=sales_headers).status_code == 401
        active = db_session.query(SessionToken).filter_by(user_id=sales_a.id, is_revoked=False).count()
        assert active == 0

    def test_delete_user_without_activity(self, client, db_session, admin_a, sales_a):
        auth_headers(sales_a)
        resp = client.delete(f"/api/users/{sales_a.id}", headers=auth_headers(admin_a))

        assert resp.status_code == 200
        assert db_session.get(User, sales_a.id) is None

    def test_delete_user_with_sales_refused(self, client, db_session, tenant_a, admin_a, sales_a, product_a):
        transaction_service.create_transaction(
            tenant_id=tenant_a.id, user_id=sales_a.id,
            items=[{"product_id": product_a.id, "quantity": 1}],
            payment_method="mpesa",
        )

        resp = client.delete(f"/api/users/{sales_a.id}", headers=auth_headers(admin_a))

        assert resp.status_code == 400
        assert "deactivate" in resp.json["error"]
        assert db_session.get(User, sales_a.id) is not None


class TestPasswords:
    def test_admin_reset_revokes_sessions(self, client, admin_a, sales_a):
        sales_headers = auth_headers(sales_a)
        resp = client.put(f"/api/users/{sales_a.id}/password", headers=auth_headers(admin_a),
                          json={"password": NEW_PASSWORD})

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=sales_headers).status_code == 401
        assert login(client, "sales@acme.test", NEW_PASSWORD).status_code == 200

    def test_change_own_password_keeps_current_session(self, client, sales_a):
        current = auth_headers(sales_a)
        other = auth_headers(sales_a)

        resp = client.post("/api/users/me/password", headers=current, json={
            "current_password": PASSWORD,
            "new_password": NEW_PASSWORD,
        })

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=current).status_code == 200
        assert client.get("/api/auth/me", headers=other).status_code == 401
        assert login(client, "sales@acme.test").status_code == 401

    def test_wrong_current_password(self, client, sales_a):
        resp = client.post("/api/users/me/password", headers=auth_headers(sales_a), json={
            "current_password": "Nope1234!",
            "new_password": NEW_PASSWORD,
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "Current password is incorrect"
