"""
Purpose: The customer's basket before an order is submitted.
What it does:
- Keeps one line per product (adding the same product merges quantities)
- Derives total and item count from the lines, never stores them
- Decides whether the basket can be submitted (non-empty, total > 0)
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Tuple

from .models import OrderItem, order_total


class Cart:
    def __init__(self):
        self._items: List[OrderItem] = []

    def _index(self, product_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.product_id == product_id:
                return index
        return -1

    @property
    def items(self) -> Tuple[OrderItem, ...]:
        return tuple(self._items)

    @property
    def total(self) -> float:
        return order_total(self._items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def is_submittable(self) -> bool:
        return bool(self._items) and self.total > 0

    def add_item(self, product_id: str, name: str, price: float, quantity: int = 1) -> None:
        """Adds `quantity` units; an existing line for the product is summed."""
        if quantity <= 0:
            return
        if price < 0:
            raise ValueError(f"Price for {product_id} must be >= 0")

        index = self._index(product_id)
        if index >= 0:
            existing = self._items[index]
            self._items[index] = replace(existing, quantity=existing.quantity + quantity)
        else:
            self._items.append(OrderItem(product_id=product_id, name=name, quantity=quantity, price=price))

    def set_quantity(self, product_id: str, quantity: int) -> None:
        index = self._index(product_id)
        if index < 0:
            return
        if quantity <= 0:
            del self._items[index]
        else:
            self._items[index] = replace(self._items[index], quantity=quantity)

    def increment(self, product_id: str) -> None:
        index = self._index(product_id)
        if index < 0:
            return
        self.set_quantity(product_id, self._items[index].quantity + 1)

    def decrement(self, product_id: str) -> None:
        index = self._index(product_id)
        if index < 0:
            return
        self.set_quantity(product_id, self._items[index].quantity - 1)

    def remove_item(self, product_id: str) -> None:
        self._items = [item for item in self._items if item.product_id != product_id]

    def clear(self) -> None:
        self._items = []
