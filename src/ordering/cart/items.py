"""Cart item management — commands and handler.

Every command addresses the cart by its actor. A cart that does not exist
yet is created on the first write; reads and removals against a missing
cart behave as if it were empty.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ActorKind, Cart, CartActor
from ordering.catalogue import get_catalogue
from ordering.domain import ordering


@ordering.command(part_of="Cart")
class AddCartItem:
    actor_kind = String(choices=ActorKind, required=True)
    actor_ref = String(max_length=255, required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Cart")
class UpdateCartItemQuantity:
    actor_kind = String(choices=ActorKind, required=True)
    actor_ref = String(max_length=255, required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.command(part_of="Cart")
class RemoveCartItem:
    actor_kind = String(choices=ActorKind, required=True)
    actor_ref = String(max_length=255, required=True)
    product_id = Identifier(required=True)


@ordering.command(part_of="Cart")
class ClearCart:
    actor_kind = String(choices=ActorKind, required=True)
    actor_ref = String(max_length=255, required=True)


def actor_from(command) -> CartActor:
    return CartActor(kind=command.actor_kind, ref=command.actor_ref)


def load_cart(actor: CartActor) -> Cart | None:
    try:
        return current_domain.repository_for(Cart).get(actor.key)
    except ObjectNotFoundError:
        return None


def load_or_create_cart(actor: CartActor) -> Cart:
    return load_cart(actor) or Cart.for_actor(actor)


def cart_view(cart: Cart | None, actor: CartActor) -> dict:
    """The server-side cart state returned to callers after every operation."""
    lines = cart.snapshot() if cart else []
    return {
        "cart_id": actor.key,
        "actor_kind": actor.kind,
        "actor_ref": actor.ref,
        "items": lines,
        "item_count": sum(line["quantity"] for line in lines),
        "total": cart.total if cart else 0,
    }


def product_or_error(product_id):
    product = get_catalogue().get_product(str(product_id))
    if product is None:
        raise ValidationError({"product_id": [f"Product {product_id} does not exist"]})
    return product


@ordering.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddCartItem)
    def add_item(self, command: AddCartItem) -> dict:
        actor = actor_from(command)
        product = product_or_error(command.product_id)

        repo = current_domain.repository_for(Cart)
        cart = load_or_create_cart(actor)
        cart.add_item(product, command.quantity)
        repo.add(cart)
        return cart_view(cart, actor)

    @handle(UpdateCartItemQuantity)
    def update_quantity(self, command: UpdateCartItemQuantity) -> dict:
        actor = actor_from(command)
        repo = current_domain.repository_for(Cart)

        if command.quantity <= 0:
            cart = load_cart(actor)
            if cart and cart.remove_item(command.product_id):
                repo.add(cart)
            return cart_view(cart, actor)

        product = product_or_error(command.product_id)
        cart = load_or_create_cart(actor)
        cart.update_quantity(product, command.quantity)
        repo.add(cart)
        return cart_view(cart, actor)

    @handle(RemoveCartItem)
    def remove_item(self, command: RemoveCartItem) -> dict:
        actor = actor_from(command)
        cart = load_cart(actor)
        if cart and cart.remove_item(command.product_id):
            current_domain.repository_for(Cart).add(cart)
        return cart_view(cart, actor)

    @handle(ClearCart)
    def clear_cart(self, command: ClearCart) -> dict:
        actor = actor_from(command)
        cart = load_cart(actor)
        if cart and not cart.is_empty:
            cart.clear(reason="requested")
            current_domain.repository_for(Cart).add(cart)
        return cart_view(cart, actor)
