from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from db.errors import StockError
from db.models import InvoiceLine, Product


@dataclass
class CartLine:
    pid: str
    name: str
    price: float
    qty: int

    @property
    def subtotal(self) -> float:
        return self.price * self.qty

    def freeze(self) -> InvoiceLine:
        return InvoiceLine(pid=self.pid, name=self.name, price=self.price, qty=self.qty)


class Cart:
    """
    In-memory cart for one checkout at the billing desk.

    Every mutation is checked against the product as passed in, i.e. the catalog's
    state at the moment of the call; nothing is reserved. Lines keep insertion order.
    """

    def __init__(self) -> None:
        self._lines: Dict[str, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    def __contains__(self, pid: str) -> bool:
        return pid in self._lines

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def total(self) -> float:
        return sum(line.subtotal for line in self._lines.values())

    def qty_of(self, pid: str) -> int:
        line = self._lines.get(pid)
        return line.qty if line else 0

    def get(self, pid: str) -> Optional[CartLine]:
        return self._lines.get(pid)

    def add(self, product: Product) -> CartLine:
        """Add one unit of `product`, or raise StockError."""
        if product.stock_count <= 0:
            raise StockError(f"'{product.name}' is out of stock.")
        line = self._lines.get(product.pid)
        if line is None:
            line = CartLine(product.pid, product.name, product.price, 1)
            self._lines[product.pid] = line
            return line
        if line.qty >= product.stock_count:
            raise StockError(
                f"Cannot add more '{product.name}' than the {product.stock_count} in stock."
            )
        line.qty += 1
        return line

    def set_qty(self, product: Product, qty: int) -> CartLine:
        """Set the quantity of an existing line; invalid values leave it unchanged."""
        line = self._lines.get(product.pid)
        if line is None:
            raise StockError(f"'{product.name}' is not in the cart.")
        if qty < 1:
            raise StockError("Quantity must be at least 1.")
        if qty > product.stock_count:
            raise StockError(
                f"Only {product.stock_count} units of '{product.name}' available."
            )
        line.qty = qty
        return line

    def remove(self, pid: str) -> None:
        self._lines.pop(pid, None)

    def clear(self) -> None:
        self._lines.clear()

    def freeze(self) -> List[InvoiceLine]:
        return [line.freeze() for line in self._lines.values()]
