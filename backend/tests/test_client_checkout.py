"""
Register-side client: session permissions and guarded checkout.

Unit tests run against a scripted httpx.MockTransport; the last class drives
the real Flask app through httpx.WSGITransport.
"""

import json

import httpx
import pytest

from conftest import PASSWORD
from nexa.client import (
    Cart,
    Checkout,
    CheckoutError,
    CheckoutInProgress,
    ApiError,
    FinalizationOutcomeUnknown,
    KeyReusedForOtherSale,
    PermissionDenied,
    PosApiClient,
    PreconditionFailed,
    ResolutionRequired,
    StockConflict,
)
from nexa.extensions import db
from nexa.models import Product, Sale

ARROZ = {"id": 1, "name": "Arroz 5kg", "price_cents": 1000, "stock_qty": 10}
FEIJAO = {"id": 2, "name": "Feijao 1kg", "price_cents": 500, "stock_qty": 1}


class FakeServer:
    """Scripted API. finalize_responses is consumed one entry per finalize call."""

    def __init__(self, permissions=("CREATE_SALE", "VIEW_PRODUCTS")):
        self.permissions = list(permissions)
        self.requests = []
        self.finalize_responses = []
        self.committed = {}
        self.logout_response = httpx.Response(200, json={"message": "Logged out"})

    def __call__(self, request):
        self.requests.append(request)
        path = request.url.path
        if path == "/api/auth/login":
            return httpx.Response(200, json={
                "token": "tok",
                "user": {"id": 1, "username": "caixa"},
                "roles": ["cashier"],
                "permissions": self.permissions,
            })
        if path == "/api/auth/logout":
            return self.logout_response
        if path == "/api/sales/finalize":
            action = self.finalize_responses.pop(0)
            if isinstance(action, Exception):
                raise action
            if callable(action):
                return action(request)
            return action
        if path.startswith("/api/sales/by-key/"):
            key = path.rsplit("/", 1)[-1]
            if key in self.committed:
                return httpx.Response(200, json={"sale": self.committed[key], "committed": True})
            return httpx.Response(404, json={"error": "No sale for this key", "committed": False})
        return httpx.Response(404, json={"error": "not found"})

    def finalize_requests(self):
        return [r for r in self.requests if r.url.path == "/api/sales/finalize"]


def _sale_response(request, sale_id=1):
    body = json.loads(request.content)
    return httpx.Response(201, json={
        "sale": {"id": sale_id, "idempotency_key": body["idempotency_key"], "total_cents": body["total_cents"]},
        "replayed": False,
    })


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def api(server):
    client = PosApiClient("http://pos.test", transport=httpx.MockTransport(server))
    client.login("caixa", "secret")
    yield client
    client.close()


@pytest.fixture
def cart():
    c = Cart()
    c.add(ARROZ)
    c.add(ARROZ)
    return c


@pytest.fixture
def checkout(api, cart):
    keys = iter(f"key-{n}" for n in range(1, 100))
    return Checkout(api, cart, key_factory=lambda: next(keys))


class TestSession:

    def test_login_loads_permissions(self, api):
        assert api.token == "tok"
        assert api.roles == ["cashier"]
        assert api.can("CREATE_SALE")
        assert not api.can("EMIT_INVOICE")

    def test_fiscal_actions_blocked_without_request(self, api, server):
        sent = len(server.requests)
        with pytest.raises(PermissionDenied):
            api.emit_invoice(1)
        with pytest.raises(PermissionDenied):
            api.cancel_invoice(1)
        with pytest.raises(PermissionDenied):
            api.correct_invoice(1, "texto suficientemente longo")
        assert len(server.requests) == sent

    def test_logout_clears_context(self, api, server):
        api.logout()
        assert api.token is None
        assert api.permissions == set()
        assert server.requests[-1].url.path == "/api/auth/logout"

    def test_logout_clears_context_when_server_fails(self, api, server):
        server.logout_response = httpx.Response(500, json={"error": "Internal server error"})

        with pytest.raises(ApiError):
            api.logout()

        assert api.token is None
        assert api.roles == []
        assert not api.can("CREATE_SALE")


class TestPreconditions:

    def test_payment_method_required(self, checkout, server):
        with pytest.raises(PreconditionFailed, match="payment method"):
            checkout.finalize(None)
        assert server.finalize_requests() == []

    def test_unknown_payment_method(self, checkout):
        with pytest.raises(PreconditionFailed):
            checkout.finalize("cheque")

    def test_empty_cart(self, api, server):
        with pytest.raises(PreconditionFailed, match="empty"):
            Checkout(api, Cart()).finalize("cash")
        assert server.finalize_requests() == []

    def test_quantity_above_seen_stock(self, checkout, cart):
        cart.add(FEIJAO)
        cart.add(FEIJAO)
        with pytest.raises(PreconditionFailed) as exc:
            checkout.finalize("pix")
        assert [line.product_id for line in exc.value.lines] == [2]

    def test_discount_above_subtotal(self, checkout):
        with pytest.raises(PreconditionFailed):
            checkout.finalize("cash", discount_cents=2001)


class TestOutcomes:

    def test_success_clears_cart(self, checkout, cart, server):
        server.finalize_responses.append(_sale_response)

        sale = checkout.finalize("card", discount_cents=100)

        assert sale["total_cents"] == 1900
        assert not cart
        assert checkout.pending_key is None

        request = server.finalize_requests()[0]
        body = json.loads(request.content)
        assert request.headers["Idempotency-Key"] == body["idempotency_key"] == "key-1"
        assert body["items"] == [{"product_id": 1, "quantity": 2, "unit_price_cents": 1000}]
        assert body["subtotal_cents"] == 2000

    def test_stock_conflict_keeps_cart(self, checkout, cart, server):
        conflict = [{"product_id": 1, "requested_quantity": 2, "on_hand": 1}]
        server.finalize_responses.append(httpx.Response(409, json={
            "error": "Insufficient stock", "details": {"items": conflict},
        }))

        with pytest.raises(StockConflict) as exc:
            checkout.finalize("cash")

        assert exc.value.items == conflict
        assert cart.get(1).quantity == 2
        assert checkout.pending_key is None

    def test_validation_error(self, checkout, cart, server):
        server.finalize_responses.append(httpx.Response(400, json={"error": "Unknown product"}))
        with pytest.raises(CheckoutError, match="Unknown product"):
            checkout.finalize("cash")
        assert cart

    def test_timeout_keeps_key_for_retry(self, checkout, cart, server):
        server.finalize_responses.append(httpx.ReadTimeout("timed out"))
        server.finalize_responses.append(_sale_response)

        with pytest.raises(FinalizationOutcomeUnknown) as exc:
            checkout.finalize("pix")
        assert exc.value.idempotency_key == "key-1"
        assert checkout.pending_key == "key-1"
        assert cart

        assert checkout.resolve() is None
        checkout.finalize("pix")
        keys = [json.loads(r.content)["idempotency_key"] for r in server.finalize_requests()]
        assert keys == ["key-1", "key-1"]

    def test_server_error_is_unknown_outcome(self, checkout, server):
        server.finalize_responses.append(httpx.Response(500, json={"error": "Internal server error"}))
        with pytest.raises(FinalizationOutcomeUnknown):
            checkout.finalize("pix")

    def test_connect_error_is_definite(self, checkout, server):
        server.finalize_responses.append(httpx.ConnectError("connection refused"))
        with pytest.raises(CheckoutError) as exc:
            checkout.finalize("pix")
        assert not isinstance(exc.value, FinalizationOutcomeUnknown)

    def test_resolve_committed(self, checkout, cart, server):
        server.finalize_responses.append(httpx.ReadTimeout("timed out"))
        with pytest.raises(FinalizationOutcomeUnknown):
            checkout.finalize("pix")

        server.committed["key-1"] = {"id": 9, "idempotency_key": "key-1"}
        assert checkout.resolve()["id"] == 9
        assert not cart
        assert checkout.pending_key is None

    def test_resolve_not_committed(self, checkout, cart, server):
        server.finalize_responses.append(httpx.ReadTimeout("timed out"))
        with pytest.raises(FinalizationOutcomeUnknown):
            checkout.finalize("pix")

        assert checkout.resolve() is None
        assert checkout.pending_key == "key-1"
        assert cart

    def test_resolve_without_pending(self, checkout):
        assert checkout.resolve() is None

    def test_finalize_refused_until_resolved(self, checkout, cart, server):
        server.finalize_responses.append(httpx.ReadTimeout("timed out"))
        with pytest.raises(FinalizationOutcomeUnknown):
            checkout.finalize("pix")

        cart.add(ARROZ)
        with pytest.raises(ResolutionRequired):
            checkout.finalize("pix")
        assert len(server.finalize_requests()) == 1
        assert not checkout.in_flight

        server.committed["key-1"] = {"id": 4, "idempotency_key": "key-1"}
        assert checkout.resolve()["id"] == 4
        assert checkout.pending_key is None
        assert not checkout.outcome_unknown

    def test_key_reused_for_other_sale(self, checkout, cart, server):
        server.finalize_responses.append(httpx.Response(500, json={"error": "Internal server error"}))
        server.finalize_responses.append(httpx.Response(422, json={
            "error": "idempotency_key already used for a different sale",
            "details": {"sale_number": 12},
        }))
        with pytest.raises(FinalizationOutcomeUnknown):
            checkout.finalize("pix")
        assert checkout.resolve() is None

        cart.add(ARROZ)
        with pytest.raises(KeyReusedForOtherSale) as exc:
            checkout.finalize("pix")

        assert exc.value.idempotency_key == "key-1"
        assert checkout.pending_key == "key-1"
        assert cart.get(1).quantity == 3
        with pytest.raises(ResolutionRequired):
            checkout.finalize("pix")

        server.committed["key-1"] = {"id": 12, "idempotency_key": "key-1"}
        assert checkout.resolve()["id"] == 12
        assert not cart

    def test_second_submit_while_in_flight(self, checkout, server):
        seen = {}

        def reentrant(request):
            seen["in_flight"] = checkout.in_flight
            with pytest.raises(CheckoutInProgress):
                checkout.finalize("pix")
            return _sale_response(request)

        server.finalize_responses.append(reentrant)
        checkout.finalize("pix")

        assert seen["in_flight"] is True
        assert len(server.finalize_requests()) == 1
        assert not checkout.in_flight


class TestAgainstServer:

    @pytest.fixture
    def live_api(self, app):
        client = PosApiClient("http://pos.test", transport=httpx.WSGITransport(app=app))
        yield client
        client.close()

    def test_cashier_sale_then_manager_invoice(self, live_api, cashier, manager, make_product):
        make_product(name="Leite 1L", price_cents=599, stock_qty=4, barcode="7891000100103")

        live_api.login("cashier", PASSWORD)
        cart = Cart()
        for product in live_api.search_products("7891000100103"):
            cart.add(product)
        cart.set_quantity(cart.lines[0].product_id, 3)

        sale = Checkout(live_api, cart).finalize("cash")

        assert sale["total_cents"] == 1797
        assert db.session.query(Product).filter_by(name="Leite 1L").one().stock_qty == 1
        with pytest.raises(PermissionDenied):
            live_api.emit_invoice(sale["id"])
        live_api.logout()

        live_api.login("manager", PASSWORD)
        assert live_api.emit_invoice(sale["id"])["status"] == "autorizada"

    def test_lost_response_resolves_to_the_committed_sale(self, live_api, cashier, make_product):
        product = make_product(name="Pao de forma", price_cents=850, stock_qty=5)
        live_api.login("cashier", PASSWORD)

        class LostResponse:
            """Commits on the server, then drops the answer."""

            def __getattr__(self, name):
                return getattr(live_api, name)

            def finalize_sale(self, payload, idempotency_key):
                live_api.finalize_sale(payload, idempotency_key)
                raise httpx.ReadTimeout("timed out")

        cart = Cart()
        cart.add(product.to_summary())
        checkout = Checkout(LostResponse(), cart)

        with pytest.raises(FinalizationOutcomeUnknown):
            checkout.finalize("pix")

        sale = checkout.resolve()
        assert sale["total_cents"] == 850
        assert db.session.query(Sale).count() == 1
        assert db.session.get(Product, product.id).stock_qty == 4
