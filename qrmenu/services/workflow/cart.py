"""
Diner cart.

Lives only as long as the workflow instance; never persisted.
"""

from dataclasses import dataclass
from typing import Optional

from qrmenu.schemas import PRODUCT_ID_MAX_LENGTH, OrderItemCreate, calculate_total


@dataclass
class CartLine:
    product_id: str
    unit_price: float
    quantity: int
    name: Optional[str] = None

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


class Cart:
    """
    Ordered collection of lines, one per product.

    Example:
        >>> cart = Cart()
        >>> cart.add("prod-1", unit_price=150.0)
        >>> cart.add("prod-1", unit_price=150.0)
        >>> cart.update_quantity("prod-1", 0)
        >>> cart.is_empty
        True
    """

    def __init__(self):
        self._lines: dict[str, CartLine] = {}

    def add(
        self,
        product_id: str,
        unit_price: float,
        quantity: int = 1,
        name: Optional[str] = None,
    ) -> CartLine:
        """Add a product, or bump its quantity if already in the cart."""
        if not product_id or len(product_id) > PRODUCT_ID_MAX_LENGTH:
            raise ValueError(f"product_id must be 1-{PRODUCT_ID_MAX_LENGTH} characters")
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        if unit_price < 0:
            raise ValueError("unit_price cannot be negative")

        line = self._lines.get(product_id)
        if line is None:
            line = CartLine(product_id, unit_price, quantity, name)
            self._lines[product_id] = line
        else:
            line.quantity += quantity
        return line

    def update_quantity(self, product_id: str, quantity: int) -> None:
        """Set a line's quantity; 0 removes the line."""
        if quantity < 0:
            raise ValueError("quantity cannot be negative")
        if quantity == 0:
            self.remove(product_id)
            return
        if product_id not in self._lines:
            raise KeyError(product_id)
        self._lines[product_id].quantity = quantity

    def remove(self, product_id: str) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def to_order_items(self) -> list[OrderItemCreate]:
        return [
            OrderItemCreate(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in self._lines.values()
        ]

    @property
    def total(self) -> float:
        return calculate_total(self.to_order_items())

    def __len__(self) -> int:
        return len(self._lines)
