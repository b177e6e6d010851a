"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Cashier role denied fiscal emission, cancellation and correction (403)
- Cashier may still read invoices
- Admin and manager may perform fiscal actions
- Login / logout / me session lifecycle
- Role policy consistency
"""

import pytest

from conftest import PASSWORD
from nexa.extensions import db
from nexa.models import Invoice, SecurityEvent
from nexa.services import fiscal_service
from nexa.time_utils import utcnow


@pytest.fixture
def sale(cashier, make_sale):
    return make_sale(cashier)


@pytest.fixture
def invoice(sale, manager):
    return fiscal_service.emit_invoice(sale.id, manager.id)


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/products"),
            ("GET", "/api/products/search?q=x"),
            ("POST", "/api/sales/finalize"),
            ("GET", "/api/sales"),
            ("GET", "/api/stock/movements"),
            ("POST", "/api/purchases"),
            ("GET", "/api/finance/summary"),
            ("GET", "/api/receivables"),
            ("GET", "/api/fiscal/invoices"),
            ("POST", "/api/fiscal/nfe"),
            ("GET", "/api/customers"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/settings/company"),
            ("GET", "/api/reports/dashboard"),
            ("GET", "/api/users"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


# =============================================================================
# CASHIER DENIED FISCAL ACTIONS (403)
# =============================================================================


class TestCashierDeniedFiscal:
    """Cashier role cannot emit, cancel or correct invoices."""

    def test_cannot_emit(self, client, cashier_headers, sale):
        resp = client.post("/api/fiscal/nfe", json={"action": "emit", "sale_id": sale.id}, headers=cashier_headers)
        assert resp.status_code == 403
        assert db.session.query(Invoice).count() == 0

    def test_missing_action_defaults_to_emit(self, client, cashier_headers, sale):
        resp = client.post("/api/fiscal/nfe", json={"sale_id": sale.id}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_cancel(self, client, cashier_headers, invoice):
        resp = client.post(
            "/api/fiscal/nfe",
            json={"action": "cancel", "invoice_id": invoice.id},
            headers=cashier_headers,
        )
        assert resp.status_code == 403
        assert db.session.get(Invoice, invoice.id).status == "autorizada"

    def test_cannot_correct(self, client, cashier_headers, invoice):
        resp = client.post(
            "/api/fiscal/nfe",
            json={"action": "correction", "invoice_id": invoice.id, "correction_text": "Texto longo o bastante"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_denial_is_recorded(self, client, cashier, cashier_headers, sale):
        client.post("/api/fiscal/nfe", json={"action": "emit", "sale_id": sale.id}, headers=cashier_headers)
        assert db.session.query(SecurityEvent).filter_by(
            user_id=cashier.id, event_type="PERMISSION_DENIED",
        ).count() == 1

    def test_can_read_invoices(self, client, cashier_headers, invoice):
        resp = client.get("/api/fiscal/invoices", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["items"][0]["id"] == invoice.id

        resp = client.get(f"/api/fiscal/invoices/{invoice.id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["invoice"]["xml"].startswith("<nfeProc")

    def test_seller_cannot_read_invoices(self, client, seller_headers, invoice):
        assert client.get("/api/fiscal/invoices", headers=seller_headers).status_code == 403

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("POST", "/api/stock/movements"),
            ("POST", "/api/purchases"),
            ("GET", "/api/finance/summary"),
            ("PUT", "/api/settings/company"),
            ("DELETE", "/api/products/1"),
            ("DELETE", "/api/customers/1"),
            ("GET", "/api/reports/dashboard"),
        ],
    )
    def test_cashier_denied_back_office(self, client, cashier_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=cashier_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"


# =============================================================================
# ELEVATED ROLES
# =============================================================================


class TestElevatedFiscalAccess:

    @pytest.mark.parametrize("headers_fixture", ["admin_headers", "manager_headers"])
    def test_can_emit(self, request, client, sale, headers_fixture):
        headers = request.getfixturevalue(headers_fixture)
        resp = client.post("/api/fiscal/nfe", json={"action": "emit", "sale_id": sale.id}, headers=headers)
        assert resp.status_code == 200
        body = resp.json
        assert body["status"] == "autorizada"
        assert len(body["access_key"]) == 44
        assert "HOMOLOGACAO" in body["message"]

    def test_emit_twice_conflicts(self, client, manager_headers, invoice, sale):
        resp = client.post("/api/fiscal/nfe", json={"action": "emit", "sale_id": sale.id}, headers=manager_headers)
        assert resp.status_code == 409

    def test_emit_while_another_is_running_conflicts(self, client, manager, manager_headers, sale):
        db.session.add(Invoice(
            sale_id=sale.id,
            status="pendente",
            user_id=manager.id,
            emit_token="a" * 32,
            emit_started_at=utcnow(),
        ))
        db.session.commit()

        resp = client.post("/api/fiscal/nfe", json={"action": "emit", "sale_id": sale.id}, headers=manager_headers)

        assert resp.status_code == 409
        assert resp.json["code"] == "InvoiceEmissionInProgressError"
        assert db.session.query(Invoice).one().status == "pendente"

    def test_emit_unknown_sale(self, client, manager_headers):
        resp = client.post("/api/fiscal/nfe", json={"action": "emit", "sale_id": 999}, headers=manager_headers)
        assert resp.status_code == 404

    def test_emit_without_sale_id(self, client, manager_headers):
        resp = client.post("/api/fiscal/nfe", json={"action": "emit"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_unknown_action(self, client, manager_headers):
        resp = client.post("/api/fiscal/nfe", json={"action": "print"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_cancel(self, client, manager_headers, invoice):
        resp = client.post(
            "/api/fiscal/nfe",
            json={"action": "cancel", "invoice_id": invoice.id},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "cancelada"

    def test_short_correction_is_400(self, client, manager_headers, invoice):
        resp = client.post(
            "/api/fiscal/nfe",
            json={"action": "correction", "invoice_id": invoice.id, "correction_text": "curto demais!!"},
            headers=manager_headers,
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "CorrectionTextError"

    def test_correction_keeps_status(self, client, manager_headers, invoice):
        resp = client.post(
            "/api/fiscal/nfe",
            json={"action": "correction", "invoice_id": invoice.id, "correction_text": "Corrige o endereco."},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "autorizada"
        assert resp.json["sequence"] == 1

    def test_gateway_outage_is_502(self, app, client, manager_headers, sale):
        from nexa.services.fiscal_gateway import FiscalGatewayError

        class Down:
            environment = "homologacao"

            def authorize(self, request):
                raise FiscalGatewayError("timeout")

        app.extensions["fiscal_gateway"] = Down()
        resp = client.post("/api/fiscal/nfe", json={"action": "emit", "sale_id": sale.id}, headers=manager_headers)
        assert resp.status_code == 502
        assert db.session.query(Invoice).one().status == "pendente"


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================


class TestSessionLifecycle:

    def test_login_returns_roles_and_permissions(self, client, manager):
        resp = client.post("/api/auth/login", json={"username": "manager", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json["roles"] == ["manager"]
        assert "EMIT_INVOICE" in resp.json["permissions"]
        assert resp.json["token"]

    def test_cashier_permissions_exclude_fiscal_actions(self, client, cashier):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": PASSWORD})
        permissions = set(resp.json["permissions"])
        assert "VIEW_INVOICES" in permissions
        assert not permissions & {"EMIT_INVOICE", "CANCEL_INVOICE", "CORRECT_INVOICE"}

    def test_bad_password(self, client, cashier):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": "wrong"})
        assert resp.status_code == 401
        assert db.session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_missing_credentials(self, client):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_logout_revokes_token(self, client, cashier):
        token = client.post(
            "/api/auth/login", json={"username": "cashier", "password": PASSWORD},
        ).json["token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.get("/api/auth/me", headers=headers).status_code == 200
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


# =============================================================================
# ROLE POLICY
# =============================================================================


class TestRolePolicy:

    def test_every_granted_permission_is_defined(self):
        from nexa.permissions import DEFAULT_ROLE_PERMISSIONS, ROLES, get_all_permission_codes

        defined = set(get_all_permission_codes())
        assert set(DEFAULT_ROLE_PERMISSIONS) == set(ROLES)
        for role, codes in DEFAULT_ROLE_PERMISSIONS.items():
            assert set(codes) <= defined, role

    def test_only_elevated_roles_hold_fiscal_actions(self):
        from nexa.permissions import ELEVATED_ROLES, ROLES, role_allows

        for role in ROLES:
            for code in ("EMIT_INVOICE", "CANCEL_INVOICE", "CORRECT_INVOICE"):
                assert role_allows([role], code) == (role in ELEVATED_ROLES)

    @pytest.mark.parametrize("role,elevated", [("manager", True), ("cashier", False)])
    def test_me_reports_elevation(self, request, client, role, elevated):
        user = request.getfixturevalue(role)
        token = client.post("/api/auth/login", json={"username": user.username, "password": PASSWORD}).json["token"]
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.json["is_elevated"] is elevated
