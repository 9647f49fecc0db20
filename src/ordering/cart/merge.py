"""Guest-to-user cart merge.

The user's cart records the merge marker and the guest cart is discarded
in the same unit of work that writes the merged lines, so a guest line
added after the merge always lands in a fresh generation and is never
lost. A repeated merge finds the marker and counts nothing twice.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart, CartActor
from ordering.cart.items import cart_view, load_cart, load_or_create_cart
from ordering.catalogue import get_catalogue
from ordering.domain import ordering

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Cart")
class MergeGuestCart:
    session_id = String(max_length=255, required=True)
    user_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class MergeGuestCartHandler:
    @handle(MergeGuestCart)
    def merge_guest_cart(self, command: MergeGuestCart) -> dict:
        user_actor = CartActor.user(command.user_id)
        guest = load_cart(CartActor.guest(command.session_id))

        if guest is None or guest.is_empty:
            logger.info("No guest cart to merge", session_id=command.session_id, user_id=str(command.user_id))
            return {**cart_view(load_cart(user_actor), user_actor), "lines_merged": 0}

        catalogue = get_catalogue()
        guest_lines = []
        for line in guest.lines:
            product = catalogue.get_product(str(line.product_id))
            if product is None:
                logger.warning("Dropping guest line for unknown product", product_id=str(line.product_id))
                continue
            guest_lines.append((product, line.quantity))

        cart = load_or_create_cart(user_actor)
        if cart.has_merged(guest.merge_marker):
            logger.info("Guest cart already merged", marker=guest.merge_marker)
            return {**cart_view(cart, user_actor), "lines_merged": 0}

        merged = cart.merge_guest_lines(str(guest.cart_id), guest.generation, guest_lines)
        guest.discard()

        repo = current_domain.repository_for(Cart)
        repo.add(cart)
        repo.add(guest)
        logger.info("Guest cart merged and discarded", cart_id=str(guest.cart_id), user_cart_id=str(cart.cart_id))

        return {**cart_view(cart, user_actor), "lines_merged": merged}
