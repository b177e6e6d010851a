# Overview: Debounced catalog lookup for the register's search box.

from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional

DEFAULT_DEBOUNCE_SECONDS = 0.3


class SearchDebouncer:
    """
    Collapses bursts of keystrokes into one query.

    feed() records the latest text; due() returns it once the input has been
    quiet for `delay` seconds, and only if it differs from the last query
    released. The clock is injectable so tests do not sleep.
    """

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.delay = delay
        self.clock = clock
        self._pending: Optional[str] = None
        self._last_input_at: Optional[float] = None
        self._last_released: Optional[str] = None

    def feed(self, text: str) -> None:
        self._pending = text.strip()
        self._last_input_at = self.clock()

    def due(self) -> Optional[str]:
        if self._pending is None or self._last_input_at is None:
            return None
        if self.clock() - self._last_input_at < self.delay:
            return None

        query, self._pending = self._pending, None
        if query == self._last_released:
            return None
        self._last_released = query
        return query

    def reset(self) -> None:
        self._pending = None
        self._last_input_at = None
        self._last_released = None


class CatalogLookup:
    """Search box state: debounced queries, results of the latest one."""

    def __init__(self, api, debouncer: Optional[SearchDebouncer] = None):
        self.api = api
        self.debouncer = debouncer or SearchDebouncer()
        self.results: List[Dict] = []
        self.query: str = ""
        self.requests_sent = 0

    def on_input(self, text: str) -> None:
        self.debouncer.feed(text)

    def tick(self) -> bool:
        """Run the pending query if it is due. Returns True when results changed."""
        query = self.debouncer.due()
        if query is None:
            return False

        self.query = query
        if not query:
            self.results = []
            return True

        self.results = self.api.search_products(query)
        self.requests_sent += 1
        return True

    def stock_for(self, product_id: int) -> Optional[int]:
        for product in self.results:
            if product["id"] == product_id:
                return product.get("stock_qty")
        return None
