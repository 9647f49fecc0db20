"""Domain events for the Cart aggregate."""

from protean.fields import Boolean, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Cart")
class CartItemAdded:
    """A product was added to a cart, possibly clamped to available stock."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    requested_quantity = Integer(required=True)
    line_quantity = Integer(required=True)
    clamped = Boolean(default=False)


@ordering.event(part_of="Cart")
class CartItemQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)


@ordering.event(part_of="Cart")
class CartCleared:
    """All lines were removed (buyer request, checkout completion, or merge)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    reason = String(max_length=50, required=True)
    generation = String(max_length=36)


@ordering.event(part_of="Cart")
class CartsMerged:
    """A guest cart's lines were folded into a user's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_cart_id = Identifier(required=True)
    source_generation = String(max_length=36, required=True)
    lines_merged = Integer(required=True)
