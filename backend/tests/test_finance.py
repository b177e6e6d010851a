"""Cash-flow ledger, accounts receivable and reports."""

from datetime import date, timedelta

import pytest

from nexa.extensions import db
from nexa.models import AccountReceivable, Customer, FinancialMovement
from nexa.services import finance_service, receivable_service, reporting_service
from nexa.time_utils import utcnow
from nexa.validation import ConflictError, ValidationError


class TestLedger:

    def test_summary(self, manager):
        finance_service.append_movement(
            movement_type="INFLOW", amount_cents=5000, description="Venda #1", user_id=manager.id,
        )
        finance_service.append_movement(
            movement_type="OUTFLOW", amount_cents=1200, description="Compra", user_id=manager.id,
        )
        db.session.commit()
        assert finance_service.summarize() == {
            "inflow_cents": 5000,
            "outflow_cents": 1200,
            "balance_cents": 3800,
        }

    @pytest.mark.parametrize("movement_type,amount", [("TRANSFER", 100), ("INFLOW", 0), ("OUTFLOW", -5)])
    def test_rejects_bad_movements(self, manager, movement_type, amount):
        with pytest.raises(ValidationError):
            finance_service.append_movement(
                movement_type=movement_type, amount_cents=amount, description="x", user_id=manager.id,
            )

    def test_sales_feed_the_ledger_route(self, client, cashier, manager_headers, make_sale):
        make_sale(cashier, quantity=2, price_cents=1000, payment_method="card")
        resp = client.get("/api/finance/movements?type=INFLOW", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["items"][0]["amount_cents"] == 2000
        assert resp.json["items"][0]["payment_method"] == "card"

        summary = client.get("/api/finance/summary", headers=manager_headers).json
        assert summary["balance_cents"] == 2000


@pytest.fixture
def customer(db_session):
    c = Customer(name="Joao Pereira", cpf="98765432100")
    db_session.add(c)
    db_session.commit()
    return c


class TestReceivables:

    def test_create_and_receive(self, manager, customer):
        receivable = receivable_service.create_receivable(
            payload={
                "description": "Fiado da semana",
                "amount_cents": 4500,
                "due_date": "2026-11-10",
                "customer_id": customer.id,
            },
            user_id=manager.id,
        )
        assert receivable.status == "pending"
        assert receivable.due_date == date(2026, 11, 10)

        received = receivable_service.receive(receivable.id, user_id=manager.id, payment_method="pix")
        assert received.status == "received"
        assert received.paid_date is not None

        inflow = db.session.query(FinancialMovement).one()
        assert inflow.amount_cents == 4500
        assert inflow.reference_type == "receivable"

    def test_cannot_receive_twice(self, manager, customer):
        receivable = receivable_service.create_receivable(
            payload={"description": "Parcela 1/2", "amount_cents": 1000, "due_date": "2026-11-01"},
            user_id=manager.id,
        )
        receivable_service.receive(receivable.id, user_id=manager.id)
        with pytest.raises(ConflictError):
            receivable_service.receive(receivable.id, user_id=manager.id)
        assert db.session.query(FinancialMovement).count() == 1

    def test_amount_must_be_positive(self, manager):
        with pytest.raises(ValidationError):
            receivable_service.create_receivable(
                payload={"description": "Zero", "amount_cents": 0, "due_date": "2026-11-01"},
                user_id=manager.id,
            )

    def test_overdue_filter(self, manager):
        for description, due in (("Vencida", "2026-01-01"), ("A vencer", "2027-01-01")):
            receivable_service.create_receivable(
                payload={"description": description, "amount_cents": 100, "due_date": due},
                user_id=manager.id,
            )
        overdue = receivable_service.list_receivables(overdue=True, today=date(2026, 6, 1))
        assert [r.description for r in overdue] == ["Vencida"]

    def test_routes(self, client, manager_headers):
        created = client.post(
            "/api/receivables",
            json={"description": "Venda a prazo", "amount_cents": 800, "due_date": "2026-12-01"},
            headers=manager_headers,
        )
        assert created.status_code == 201
        receivable_id = created.json["receivable"]["id"]

        first = client.post(f"/api/receivables/{receivable_id}/receive", json={}, headers=manager_headers)
        second = client.post(f"/api/receivables/{receivable_id}/receive", json={}, headers=manager_headers)
        assert first.status_code == 200
        assert second.status_code == 409
        assert client.post("/api/receivables/999/receive", headers=manager_headers).status_code == 404

    def test_deleting_customer_detaches_receivables(self, client, manager, manager_headers, customer):
        receivable = receivable_service.create_receivable(
            payload={"description": "Fiado", "amount_cents": 100, "due_date": "2026-11-01", "customer_id": customer.id},
            user_id=manager.id,
        )
        resp = client.delete(f"/api/customers/{customer.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert db.session.get(AccountReceivable, receivable.id).customer_id is None


class TestReports:

    def test_dashboard(self, manager, cashier, make_sale, make_product):
        make_sale(cashier, quantity=1, price_cents=3000)
        make_product(name="Acabou", stock_qty=0, min_stock=1)
        receivable_service.create_receivable(
            payload={"description": "Aberto", "amount_cents": 700, "due_date": "2026-12-01"},
            user_id=manager.id,
        )

        data = reporting_service.dashboard()

        assert data["sales_today"] == {"count": 1, "total_cents": 3000}
        assert data["month"]["inflow_cents"] == 3000
        assert data["low_stock_count"] == 1
        assert data["receivables_pending"] == {"count": 1, "total_cents": 700}

    def test_dashboard_of_another_day(self, cashier, make_sale):
        make_sale(cashier)
        data = reporting_service.dashboard(now=utcnow() + timedelta(days=40))
        assert data["sales_today"]["count"] == 0

    def test_dashboard_route_includes_top_products(self, client, cashier, manager_headers, make_sale):
        make_sale(cashier, quantity=3, price_cents=200)
        resp = client.get("/api/reports/dashboard", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["top_products"][0] == {"product_name": "Cafe 500g", "quantity": 3, "total_cents": 600}

    def test_sales_report_by_day(self, client, cashier, manager_headers, make_sale):
        make_sale(cashier, price_cents=1000)
        make_sale(cashier, price_cents=500)
        resp = client.get("/api/reports/sales?group_by=day", headers=manager_headers)
        assert resp.status_code == 200
        rows = resp.json["rows"]
        assert len(rows) == 1
        assert rows[0]["sales_count"] == 2
        assert rows[0]["total_cents"] == 1500

    def test_sales_report_bad_grouping(self, client, manager_headers):
        resp = client.get("/api/reports/sales?group_by=week", headers=manager_headers)
        assert resp.status_code == 400
