"""Cart reconciliation.

A cart is a list of `{"product_id", "quantity"}` lines with at most one line
per product. The functions here are pure: they return new lists and never
touch the inputs. Quantities and stock are not checked at this level.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional

CENT = Decimal("0.01")

CartLines = List[Dict[str, Any]]


def add_or_increment(cart: CartLines, product_id: str, quantity: int = 1) -> CartLines:
    updated = []
    merged = False
    for line in cart:
        line = dict(line)
        if line["product_id"] == product_id and not merged:
            line["quantity"] = int(line.get("quantity", 0)) + int(quantity)
            merged = True
        updated.append(line)
    if not merged:
        updated.append({"product_id": product_id, "quantity": int(quantity)})
    return updated


def remove(cart: CartLines, product_id: str) -> CartLines:
    return [dict(line) for line in cart if line["product_id"] != product_id]


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 9.99 from turning into 9.9900000000000002131...
    return Decimal(str(value))


def round_currency(amount) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def cart_total(cart: CartLines, price_lookup: Callable[[str], Any]) -> Decimal:
    """Sum of unit price times quantity, rounded to cents."""
    total = sum(
        (to_decimal(price_lookup(line["product_id"])) * int(line["quantity"]) for line in cart),
        Decimal("0"),
    )
    return round_currency(total)


def to_minor_units(amount) -> int:
    """Convert a currency amount to the processor's integer cents."""
    return int((round_currency(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


class LocalCart:
    """Client-held cart.

    Keeps a snapshot of each product next to its line so totals and
    rendering don't need another catalog round-trip. Instances are owned by
    whichever view creates them and passed around explicitly.
    """

    def __init__(self):
        self._lines: CartLines = []
        self._products: Dict[str, Dict[str, Any]] = {}

    def add(self, product: Dict[str, Any], quantity: int = 1) -> None:
        self._products[product["id"]] = product
        self._lines = add_or_increment(self._lines, product["id"], quantity)

    def remove(self, product_id: str) -> None:
        self._lines = remove(self._lines, product_id)
        self._products.pop(product_id, None)

    def clear(self) -> None:
        self._lines = []
        self._products = {}

    def product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self._products.get(product_id)

    @property
    def lines(self) -> CartLines:
        return [dict(line) for line in self._lines]

    @property
    def item_count(self) -> int:
        return len(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def line_total(self, product_id: str) -> Decimal:
        return cart_total(
            [line for line in self._lines if line["product_id"] == product_id],
            self._price,
        )

    def total(self) -> Decimal:
        return cart_total(self._lines, self._price)

    def as_checkout_items(self) -> List[Dict[str, Any]]:
        return [
            {"productId": line["product_id"], "quantity": line["quantity"]}
            for line in self._lines
        ]

    def _price(self, product_id: str):
        return self._products[product_id]["price"]
