"""Checkout coordination.

Turns a cart snapshot into a Stripe PaymentIntent plus an order in
`processing`, and later finalizes that order from Stripe's webhook events.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import cart
from database import AccountStore, CatalogStore, OrderStore
from errors import AmountMismatchError, PaymentError, ValidationError
from payments import FAILED_EVENT, SUCCEEDED_EVENT, PaymentEvent, PaymentGateway
from schemas import Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    client_secret: str
    order_id: str


class CheckoutCoordinator:

    def __init__(self, catalog: CatalogStore, orders: OrderStore, accounts: AccountStore, gateway: PaymentGateway):
        self.catalog = catalog
        self.orders = orders
        self.accounts = accounts
        self.gateway = gateway

    def checkout(
        self,
        items: Iterable[Dict[str, Any]],
        email: str,
        amount,
        shipping_address: Optional[Dict[str, Any]] = None,
    ) -> CheckoutResult:
        """Price the cart, hold stock, open a payment intent and record the order.

        `items` are `{"product_id", "quantity"}` lines. `amount` is what the
        client computed and must match the server-side total to the cent.
        """
        email = email.lower()
        lines = self._merge_lines(items)
        if not lines:
            raise ValidationError("Cart is empty")

        order_items = self._price_lines(lines)
        prices = {item.product_id: item.price for item in order_items}
        total = cart.cart_total(lines, prices.__getitem__)
        submitted = cart.round_currency(amount)
        if submitted != total:
            raise AmountMismatchError(submitted, total)

        self._reserve(order_items)
        try:
            intent = self.gateway.create_intent(cart.to_minor_units(total), metadata={"email": email})
        except PaymentError:
            self._release(order_items)
            raise

        order = Order(
            user_id=email,
            items=order_items,
            total=float(total),
            status=OrderStatus.PROCESSING,
            stripe_payment_id=intent.id,
            shipping_address=shipping_address,
        )
        try:
            order_id = self.orders.create(order.model_dump())
        except Exception:
            logger.error("Failed to persist order for payment intent %s", intent.id)
            self._release(order_items)
            raise

        self.accounts.record_order(email, order_id)
        logger.info("Order %s created for %s, total %s", order_id, email, total)
        return CheckoutResult(client_secret=intent.client_secret, order_id=order_id)

    def handle_payment_event(self, event: PaymentEvent) -> Optional[Dict[str, Any]]:
        """Apply a Stripe webhook event; replays and unknown events are no-ops."""
        if event.type == SUCCEEDED_EVENT:
            status = OrderStatus.SUCCEEDED
        elif event.type == FAILED_EVENT:
            status = OrderStatus.FAILED
        else:
            logger.debug("Ignoring webhook event %s", event.type)
            return None
        if not event.payment_reference:
            return None

        order = self.orders.transition(event.payment_reference, status)
        if order is None:
            logger.info("No open order for payment %s; nothing to do", event.payment_reference)
            return None
        if status == OrderStatus.FAILED:
            self._release(OrderItem(**item) for item in order["items"])
        logger.info("Order %s marked %s", order["id"], status.value)
        return order

    @staticmethod
    def _merge_lines(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        lines: List[Dict[str, Any]] = []
        for item in items:
            if int(item["quantity"]) < 1:
                raise ValidationError(f"Invalid quantity for product {item['product_id']}")
            lines = cart.add_or_increment(lines, item["product_id"], item["quantity"])
        return lines

    def _price_lines(self, lines: List[Dict[str, Any]]) -> List[OrderItem]:
        items = []
        for line in lines:
            product = self.catalog.find_by_id(line["product_id"])
            items.append(OrderItem(
                product_id=line["product_id"],
                quantity=line["quantity"],
                price=product["price"],
            ))
        return items

    def _reserve(self, items: List[OrderItem]) -> None:
        reserved: List[OrderItem] = []
        try:
            for item in items:
                self.catalog.reserve_stock(item.product_id, item.quantity)
                reserved.append(item)
        except Exception:
            self._release(reserved)
            raise

    def _release(self, items: Iterable[OrderItem]) -> None:
        for item in items:
            self.catalog.release_stock(item.product_id, item.quantity)
