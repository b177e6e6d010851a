"""Catalog lookup: server search rules and client-side debouncing."""

from nexa.client.catalog import CatalogLookup, SearchDebouncer
from nexa.services.catalog_service import search_catalog


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeApi:
    def __init__(self, results=None):
        self.queries = []
        self.results = results or []

    def search_products(self, query):
        self.queries.append(query)
        return self.results


# =============================================================================
# SERVER SEARCH
# =============================================================================


class TestSearchCatalog:

    def test_partial_name_case_insensitive(self, make_product):
        make_product(name="Arroz Integral 1kg")
        make_product(name="Feijao Preto")
        names = [p.name for p in search_catalog("arroz")]
        assert names == ["Arroz Integral 1kg"]

    def test_exact_barcode(self, make_product):
        make_product(name="Leite", barcode="7891000100103")
        make_product(name="Leite Desnatado", barcode="7891000100110")
        results = search_catalog("7891000100103")
        assert [p.barcode for p in results] == ["7891000100103"]

    def test_partial_barcode_does_not_match(self, make_product):
        make_product(name="Leite", barcode="7891000100103")
        assert search_catalog("789100") == []

    def test_exact_sku(self, make_product):
        make_product(name="Sabao", sku="SAB-01")
        assert [p.name for p in search_catalog("SAB-01")] == ["Sabao"]

    def test_inactive_products_are_hidden(self, make_product):
        make_product(name="Biscoito", is_active=False)
        make_product(name="Biscoito Recheado")
        assert [p.name for p in search_catalog("biscoito")] == ["Biscoito Recheado"]

    def test_limit_defaults_to_ten(self, make_product):
        for i in range(15):
            make_product(name=f"Refrigerante {i:02d}")
        assert len(search_catalog("refri")) == 10

    def test_limit_follows_config(self, app, make_product):
        for i in range(5):
            make_product(name=f"Agua {i}")
        app.config["CATALOG_SEARCH_LIMIT"] = 3
        try:
            assert len(search_catalog("agua")) == 3
        finally:
            app.config["CATALOG_SEARCH_LIMIT"] = 10

    def test_blank_query_returns_nothing(self, make_product):
        make_product(name="Qualquer")
        assert search_catalog("   ") == []
        assert search_catalog(None) == []

    def test_wildcards_are_literal(self, make_product):
        make_product(name="Desconto 50%")
        make_product(name="Desconto 500")
        assert [p.name for p in search_catalog("50%")] == ["Desconto 50%"]

    def test_search_route(self, client, cashier_headers, make_product):
        make_product(name="Cafe Torrado", stock_qty=7, barcode="123")
        resp = client.get("/api/products/search?q=cafe", headers=cashier_headers)
        assert resp.status_code == 200
        item = resp.json["items"][0]
        assert item["name"] == "Cafe Torrado"
        assert item["stock_qty"] == 7


# =============================================================================
# DEBOUNCE
# =============================================================================


class TestSearchDebouncer:

    def test_nothing_due_before_quiet_period(self):
        clock = FakeClock()
        debouncer = SearchDebouncer(delay=0.3, clock=clock)
        debouncer.feed("arr")
        clock.advance(0.1)
        assert debouncer.due() is None

    def test_burst_collapses_to_last_text(self):
        clock = FakeClock()
        debouncer = SearchDebouncer(delay=0.3, clock=clock)
        for text in ("a", "ar", "arr", "arroz"):
            debouncer.feed(text)
            clock.advance(0.1)
        clock.advance(0.3)
        assert debouncer.due() == "arroz"
        assert debouncer.due() is None

    def test_same_query_not_released_twice(self):
        clock = FakeClock()
        debouncer = SearchDebouncer(delay=0.3, clock=clock)
        debouncer.feed("leite")
        clock.advance(0.5)
        assert debouncer.due() == "leite"
        debouncer.feed("leite ")
        clock.advance(0.5)
        assert debouncer.due() is None


class TestCatalogLookup:

    def test_one_request_per_burst(self):
        clock = FakeClock()
        api = FakeApi(results=[{"id": 1, "name": "Arroz", "stock_qty": 4}])
        lookup = CatalogLookup(api, SearchDebouncer(delay=0.3, clock=clock))

        for text in ("a", "ar", "arr"):
            lookup.on_input(text)
            clock.advance(0.05)
            assert lookup.tick() is False

        clock.advance(0.3)
        assert lookup.tick() is True
        assert api.queries == ["arr"]
        assert lookup.requests_sent == 1
        assert lookup.stock_for(1) == 4
        assert lookup.stock_for(2) is None

    def test_clearing_input_clears_results_without_request(self):
        clock = FakeClock()
        api = FakeApi(results=[{"id": 1, "name": "Arroz", "stock_qty": 4}])
        lookup = CatalogLookup(api, SearchDebouncer(delay=0.3, clock=clock))
        lookup.on_input("arroz")
        clock.advance(0.4)
        lookup.tick()

        lookup.on_input("")
        clock.advance(0.4)
        assert lookup.tick() is True
        assert lookup.results == []
        assert api.queries == ["arroz"]
