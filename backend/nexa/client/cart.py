# Overview: In-memory cart for the register. No persistence, no network.

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class CartLine:
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int = 1
    # stock_qty as last seen by catalog lookup; advisory only
    stock_seen: Optional[int] = None

    @property
    def total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_item(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


class Cart:
    """
    Staging area for one sale.

    Lines are keyed by product id and keep insertion order. The unit price is
    captured when the product is first added; later price changes in the
    catalog do not affect a line already in the cart.
    """

    def __init__(self):
        self._lines: Dict[int, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, product_id: int) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def add(self, product: dict) -> CartLine:
        """Add one unit: existing line +1, else a new line at the product's current price."""
        product_id = product["id"]
        line = self._lines.get(product_id)
        if line is not None:
            line.quantity += 1
            if product.get("stock_qty") is not None:
                line.stock_seen = product["stock_qty"]
            return line

        line = CartLine(
            product_id=product_id,
            name=product["name"],
            unit_price_cents=product["price_cents"],
            quantity=1,
            stock_seen=product.get("stock_qty"),
        )
        self._lines[product_id] = line
        return line

    def set_quantity(self, product_id: int, quantity: int) -> None:
        """Clamp at zero; zero removes the line. Unknown products are ignored."""
        line = self._lines.get(product_id)
        if line is None:
            return
        quantity = max(0, int(quantity))
        if quantity == 0:
            del self._lines[product_id]
        else:
            line.quantity = quantity

    def change_quantity(self, product_id: int, delta: int) -> None:
        line = self._lines.get(product_id)
        if line is not None:
            self.set_quantity(product_id, line.quantity + delta)

    def remove(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def subtotal_cents(self) -> int:
        return sum(line.total_cents for line in self._lines.values())

    def total_cents(self, discount_cents: int = 0) -> int:
        return self.subtotal_cents() - discount_cents

    def total(self) -> int:
        return self.subtotal_cents()

    def over_stock(self) -> List[CartLine]:
        """Lines asking for more than the stock last seen."""
        return [
            line for line in self._lines.values()
            if line.stock_seen is not None and line.quantity > line.stock_seen
        ]

    def to_items(self) -> List[dict]:
        return [line.to_item() for line in self._lines.values()]
