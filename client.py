"""HTTP client and view state for the storefront.

`StorefrontClient` talks to the REST API. `Storefront` is what a browser
page holds: the catalog, a `LocalCart`, the loading flag and an error
string. Card confirmation belongs to Stripe's client-side SDK, so `pay()`
takes it as a callable that receives the client secret and returns the
resulting PaymentIntent status.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from cart import LocalCart

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_EMAIL = "customer@example.com"
PAYMENT_FAILED = "failed"


class StorefrontError(Exception):
    """Error reported by the storefront API, or the API being unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class StorefrontClient:
    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def list_products(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/products")

    def get_product(self, product_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/products/{product_id}")

    def checkout(self, items: List[Dict[str, Any]], email: str, amount: float) -> Dict[str, Any]:
        return self._request("POST", "/checkout", json={"items": items, "email": email, "amount": amount})

    def orders(self, user_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/orders/{user_id}")

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("Storefront API unavailable: %s", e)
            raise StorefrontError(str(e)) from e
        if response.is_success:
            return response.json()
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        raise StorefrontError(str(detail), status_code=response.status_code)


class Storefront:
    def __init__(self, api: StorefrontClient, confirm_payment: Callable[[str], str], email: str = DEFAULT_EMAIL):
        self.api = api
        self.confirm_payment = confirm_payment
        self.email = email
        self.cart = LocalCart()
        self.products: List[Dict[str, Any]] = []
        self.loading = False
        self.error: Optional[str] = None

    def load(self) -> None:
        self.loading = True
        try:
            self.products = self.api.list_products()
        except StorefrontError as e:
            logger.error("Failed to load products: %s", e)
            self.error = "Failed to load products"
        finally:
            self.loading = False

    def add_to_cart(self, product: Dict[str, Any]) -> None:
        self.cart.add(product)

    def remove_from_cart(self, product_id: str) -> None:
        self.cart.remove(product_id)

    def total(self) -> str:
        return f"{self.cart.total():.2f}"

    def render(self) -> List[str]:
        lines = [
            "ShopHub E-Commerce",
            f"Cart Items: {self.cart.item_count}  Total: ${self.total()}",
        ]
        if self.error:
            lines.append(f"Error: {self.error}")
        if self.loading:
            lines.append("Loading products...")
        else:
            for product in self.products:
                lines.append(f"{product['name']} - ${product['price']} (Stock: {product.get('stock', 0)})")
        if len(self.cart):
            lines.append("Shopping Cart")
            for line in self.cart.lines:
                product = self.cart.product(line["product_id"])
                subtotal = self.cart.line_total(line["product_id"])
                lines.append(f"{product['name']} x {line['quantity']}  ${subtotal:.2f}")
            lines.append(f"Total: ${self.total()}")
        return lines

    def pay(self) -> str:
        """Check out the cart and confirm the payment; returns the intent status."""
        self.error = None
        try:
            result = self.api.checkout(self.cart.as_checkout_items(), self.email, float(self.total()))
            status = self.confirm_payment(result["clientSecret"])
        except StorefrontError as e:
            logger.error("Payment failed: %s", e)
            self.error = f"Payment failed: {e}"
            return PAYMENT_FAILED
        if status == "succeeded":
            logger.info("Payment for order %s succeeded", result["orderId"])
            self.cart.clear()
        return status
