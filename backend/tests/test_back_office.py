"""Products, customers, suppliers, company settings, users, health and CLI."""

import pytest

from nexa.extensions import db
from nexa.models import CompanySettings, Product, SessionToken, StockMovement, User
from nexa.services import auth_service


class TestProductRoutes:

    def test_create_with_initial_stock(self, client, manager_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Arroz 5kg", "price_cents": 2890, "barcode": "7891000000011", "stock_qty": 12},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        assert resp.json["stock_qty"] == 12

        movement = db.session.query(StockMovement).one()
        assert movement.type == "ADJUST_IN"
        assert movement.quantity_delta == 12

    def test_duplicate_barcode(self, client, manager_headers, make_product):
        make_product(barcode="7891000000011")
        resp = client.post(
            "/api/products",
            json={"name": "Outro", "price_cents": 100, "barcode": "7891000000011"},
            headers=manager_headers,
        )
        assert resp.status_code == 409

    @pytest.mark.parametrize("payload", [
        {"price_cents": 100},
        {"name": "Sem preco"},
        {"name": "Negativo", "price_cents": -1},
        {"name": "Desconhecido", "price_cents": 1, "color": "azul"},
    ])
    def test_create_rejects(self, client, manager_headers, payload):
        assert client.post("/api/products", json=payload, headers=manager_headers).status_code == 400

    def test_patch_cannot_touch_stock(self, client, manager_headers, make_product):
        product = make_product(stock_qty=3)
        resp = client.patch(f"/api/products/{product.id}", json={"stock_qty": 99}, headers=manager_headers)
        assert resp.status_code == 400
        assert db.session.get(Product, product.id).stock_qty == 3

    def test_patch_price(self, client, manager_headers, make_product):
        product = make_product(price_cents=1000)
        resp = client.patch(f"/api/products/{product.id}", json={"price_cents": 1190}, headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["price_cents"] == 1190

    def test_delete_deactivates(self, client, manager_headers, make_product):
        product = make_product(name="Descontinuado")
        assert client.delete(f"/api/products/{product.id}", headers=manager_headers).status_code == 200
        assert db.session.get(Product, product.id).is_active is False

        listing = client.get("/api/products", headers=manager_headers).json
        assert listing["count"] == 0
        listing = client.get("/api/products?include_inactive=1", headers=manager_headers).json
        assert listing["count"] == 1

    def test_delete_unknown(self, client, manager_headers):
        assert client.delete("/api/products/404", headers=manager_headers).status_code == 404

    def test_pagination(self, client, cashier_headers, make_product):
        for i in range(5):
            make_product(name=f"Produto {i}")
        resp = client.get("/api/products?page=2&per_page=2", headers=cashier_headers)
        assert resp.json["count"] == 2
        assert resp.json["pagination"]["total"] == 5
        assert resp.json["pagination"]["total_pages"] == 3


class TestParties:

    def test_customer_cpf_is_normalized(self, client, cashier_headers):
        resp = client.post(
            "/api/customers",
            json={"name": "Maria Souza", "cpf": "123.456.789-09"},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        assert resp.json["cpf"] == "12345678909"

    def test_duplicate_cpf(self, client, cashier_headers):
        client.post("/api/customers", json={"name": "Maria", "cpf": "12345678909"}, headers=cashier_headers)
        resp = client.post("/api/customers", json={"name": "Outra", "cpf": "12345678909"}, headers=cashier_headers)
        assert resp.status_code == 409

    def test_bad_cpf(self, client, cashier_headers):
        resp = client.post("/api/customers", json={"name": "Maria", "cpf": "123"}, headers=cashier_headers)
        assert resp.status_code == 400

    def test_search_and_update(self, client, cashier_headers):
        created = client.post("/api/customers", json={"name": "Carlos Lima"}, headers=cashier_headers).json
        resp = client.patch(
            f"/api/customers/{created['id']}", json={"phone": "11999990000"}, headers=cashier_headers,
        )
        assert resp.status_code == 200
        found = client.get("/api/customers?q=carlos", headers=cashier_headers).json
        assert found["items"][0]["phone"] == "11999990000"

    def test_supplier_lifecycle(self, client, manager_headers):
        resp = client.post(
            "/api/suppliers",
            json={"name": "Distribuidora Norte", "cnpj": "12.345.678/0001-95"},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        supplier_id = resp.json["id"]
        assert resp.json["cnpj"] == "12345678000195"

        assert client.delete(f"/api/suppliers/{supplier_id}", headers=manager_headers).status_code == 200
        assert client.delete(f"/api/suppliers/{supplier_id}", headers=manager_headers).status_code == 404


class TestCompanySettings:

    def test_first_save_creates_row(self, client, manager_headers):
        assert client.get("/api/settings/company", headers=manager_headers).json["company"] is None
        resp = client.put(
            "/api/settings/company",
            json={"company_name": "Loja Nova LTDA", "cnpj": "12.345.678/0001-95", "address_state": "rs"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["company"]["cnpj"] == "12345678000195"
        assert resp.json["company"]["address_state"] == "RS"

    def test_patch_existing(self, client, manager_headers, company):
        resp = client.put("/api/settings/company", json={"phone": "1140040000"}, headers=manager_headers)
        assert resp.status_code == 200
        assert db.session.query(CompanySettings).count() == 1
        assert resp.json["company"]["company_name"] == "Mercado Exemplo LTDA"

    def test_bad_cnpj(self, client, manager_headers, company):
        resp = client.put("/api/settings/company", json={"cnpj": "123"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_cashier_can_read(self, client, cashier_headers, company):
        resp = client.get("/api/settings/company", headers=cashier_headers)
        assert resp.json["company"]["trade_name"] == "Mercado Exemplo"


class TestUserAdministration:

    def test_manager_cannot_manage_users(self, client, manager_headers):
        assert client.get("/api/users", headers=manager_headers).status_code == 403

    def test_create_user(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "ana", "email": "ana@nexa.test", "password": "Passw0rd!", "roles": ["cashier"]},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["user"]["roles"] == ["cashier"]

    def test_weak_password(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "ana", "email": "ana@nexa.test", "password": "fraca"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_duplicate_username(self, client, admin, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "admin", "email": "other@nexa.test", "password": "Passw0rd!"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_promotion_revokes_sessions(self, client, admin_headers, cashier, cashier_headers):
        resp = client.put(f"/api/users/{cashier.id}/roles", json={"roles": ["manager"]}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["roles"] == ["manager"]
        assert auth_service.get_user_roles(cashier.id) == ["manager"]
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401
        assert db.session.query(SessionToken).filter_by(user_id=cashier.id, is_revoked=False).count() == 0

    def test_unknown_role_changes_nothing(self, client, admin_headers, cashier):
        resp = client.put(f"/api/users/{cashier.id}/roles", json={"roles": ["owner"]}, headers=admin_headers)
        assert resp.status_code == 400
        assert auth_service.get_user_roles(cashier.id) == ["cashier"]


class TestHealth:

    def test_healthy_in_sandbox(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["fiscal"]["details"]["environment"] == "homologacao"

    def test_degraded_without_endpoint(self, app, client):
        app.config["FISCAL_MODE"] = "http"
        try:
            resp = client.get("/health")
        finally:
            app.config["FISCAL_MODE"] = "sandbox"
        assert resp.status_code == 200
        assert resp.json["status"] == "degraded"


class TestCli:

    def test_system_init_is_idempotent(self, app):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init", "--company", "Loja CLI"])
        second = runner.invoke(args=["system", "init"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "User exists: cashier" in second.output
        assert db.session.query(User).count() == 4
        assert db.session.query(CompanySettings).one().company_name == "Loja CLI"

    def test_grant_role(self, app, cashier):
        result = app.test_cli_runner().invoke(args=["users", "grant-role", "cashier", "manager"])
        assert result.exit_code == 0, result.output
        assert set(auth_service.get_user_roles(cashier.id)) == {"cashier", "manager"}

    def test_grant_role_unknown_user(self, app):
        result = app.test_cli_runner().invoke(args=["users", "grant-role", "ghost", "manager"])
        assert result.exit_code != 0
        assert "not found" in result.output
