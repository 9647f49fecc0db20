"""Cart reaction to checkout — the buyer's cart is emptied once payment succeeds."""

import structlog
from protean import handle
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart, CartActor
from ordering.cart.items import load_cart
from ordering.checkout.events import CheckoutConfirmed
from ordering.domain import ordering

logger = structlog.get_logger(__name__)


@ordering.event_handler(part_of=Cart, stream_category="ordering::checkout")
class CheckoutCartEventHandler:
    @handle(CheckoutConfirmed)
    def on_checkout_confirmed(self, event: CheckoutConfirmed) -> None:
        cart = load_cart(CartActor(kind=event.actor_kind, ref=event.actor_ref))
        if cart is None or cart.is_empty:
            return

        cart.clear(reason="checkout")
        current_domain.repository_for(Cart).add(cart)
        logger.info("Cart cleared after checkout", cart_id=str(cart.cart_id), order_id=str(event.order_id))
