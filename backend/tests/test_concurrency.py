"""
Concurrent finalization against a file-backed database.

Two registers sell the last unit at the same moment: exactly one sale
commits, the other gets a stock conflict, and stock ends at zero.
"""

import threading

import pytest

from nexa import create_app
from nexa.extensions import db
from nexa.models import FinancialMovement, Product, Sale
from nexa.services import auth_service
from nexa.services.sales_service import StockConflictError, finalize_sale


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(app, stock_qty):
    with app.app_context():
        users = [
            auth_service.create_user(
                username=f"caixa{i}", email=f"caixa{i}@nexa.test", password="Passw0rd!",
                roles=["cashier"], hash_rounds=4,
            ).id
            for i in (1, 2)
        ]
        product = Product(name="Ultima unidade", price_cents=990, stock_qty=stock_qty)
        db.session.add(product)
        db.session.commit()
        return users, product.id


def _race(app, user_ids, product_id, quantity=1):
    barrier = threading.Barrier(len(user_ids))
    outcomes = []
    lock = threading.Lock()

    def register(user_id):
        with app.app_context():
            barrier.wait()
            try:
                sale = finalize_sale(
                    user_id=user_id,
                    items=[{"product_id": product_id, "quantity": quantity}],
                    payment_method="cash",
                ).sale
                outcome = ("ok", sale.id)
            except StockConflictError as e:
                outcome = ("conflict", e.details["items"])
            finally:
                db.session.remove()
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=register, args=(uid,)) for uid in user_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


class TestConcurrentFinalization:

    def test_last_unit_sold_exactly_once(self, file_app):
        user_ids, product_id = _seed(file_app, stock_qty=1)

        outcomes = _race(file_app, user_ids, product_id)

        kinds = sorted(kind for kind, _ in outcomes)
        assert kinds == ["conflict", "ok"]

        conflict = next(payload for kind, payload in outcomes if kind == "conflict")
        assert conflict[0]["product_id"] == product_id
        assert conflict[0]["on_hand"] == 0

        with file_app.app_context():
            assert db.session.get(Product, product_id).stock_qty == 0
            assert db.session.query(Sale).count() == 1
            assert db.session.query(FinancialMovement).count() == 1

    def test_enough_stock_for_both(self, file_app):
        user_ids, product_id = _seed(file_app, stock_qty=2)

        outcomes = _race(file_app, user_ids, product_id)

        assert [kind for kind, _ in outcomes] == ["ok", "ok"]
        with file_app.app_context():
            assert db.session.get(Product, product_id).stock_qty == 0
            numbers = sorted(s.sale_number for s in db.session.query(Sale).all())
            assert numbers == [1, 2]
