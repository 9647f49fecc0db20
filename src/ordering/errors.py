"""Buyer-facing error taxonomy for carts, checkout and the order lifecycle.

Every error here is a Protean ValidationError, so it is raised before any
side effect and rendered through the API's exception handlers with a
``{"field": [messages]}`` body.
"""

from protean.exceptions import ValidationError


class EmptyCart(ValidationError):
    def __init__(self, actor_key: str) -> None:
        super().__init__({"cart": ["Cart is empty"]})
        self.actor_key = actor_key


class OutOfStock(ValidationError):
    def __init__(self, product_id: str, available: int = 0) -> None:
        super().__init__({"product_id": [f"Product {product_id} is out of stock (available: {available})"]})
        self.product_id = product_id
        self.available = available


class StoreUnavailable(ValidationError):
    """One or more stores in the cart cannot currently accept charges."""

    def __init__(self, store_ids: list[str]) -> None:
        super().__init__({"store_ids": [f"Store {store_id} cannot accept payments" for store_id in store_ids]})
        self.store_ids = list(store_ids)


class PaymentIntentMismatch(ValidationError):
    def __init__(self, payment_intent_id: str, reason: str = "does not match the current checkout") -> None:
        super().__init__({"payment_intent_id": [f"Payment intent {payment_intent_id} {reason}"]})
        self.payment_intent_id = payment_intent_id


class PaymentFailure(ValidationError):
    """The provider declined the charge. The cart is left intact for a retry."""

    def __init__(self, payment_intent_id: str, provider_status: str, reason: str | None = None) -> None:
        message = reason or f"Payment was not completed (status: {provider_status})"
        super().__init__({"payment": [message]})
        self.payment_intent_id = payment_intent_id
        self.provider_status = provider_status


class InvalidTransition(ValidationError):
    """An order or driver state machine violation."""

    def __init__(self, current: str, target: str, reason: str | None = None) -> None:
        message = reason or f"Cannot transition from {current} to {target}"
        super().__init__({"status": [message]})
        self.current = current
        self.target = target
