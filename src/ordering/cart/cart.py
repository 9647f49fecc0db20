"""Cart aggregate (CQRS) — the server-side system of record for a buyer's cart.

A cart belongs to exactly one CartActor: a guest session or an
authenticated user. The actor's key is the cart's identity, so every cart
operation is addressed by actor rather than by a separate cart id.

Quantities are always clamped to the product's stock at the time of the
write. Merging a guest cart into a user's cart is made idempotent by a
merge marker (``<guest cart id>@<guest generation>``) recorded in the same
unit of work as the merged lines; the guest cart's generation changes when
it is discarded, so only a genuinely new guest cart can be merged again.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from ordering.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
    CartsMerged,
)
from ordering.domain import ordering
from ordering.errors import OutOfStock


class ActorKind(Enum):
    GUEST = "guest"
    USER = "user"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Cart")
class CartActor:
    """Who owns a cart: ``Guest(session_id)`` or ``User(user_id)``."""

    kind = String(choices=ActorKind, required=True)
    ref = String(max_length=255, required=True)

    @classmethod
    def guest(cls, session_id):
        return cls(kind=ActorKind.GUEST.value, ref=str(session_id))

    @classmethod
    def user(cls, user_id):
        return cls(kind=ActorKind.USER.value, ref=str(user_id))

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.ref}"

    @property
    def is_guest(self) -> bool:
        return ActorKind(self.kind) == ActorKind.GUEST


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    store_id = Identifier(required=True)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)  # minor units, snapshot at last write
    added_at = DateTime()
    updated_at = DateTime()

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "store_id": str(self.store_id),
            "title": self.title,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Cart:
    cart_id = Identifier(identifier=True, required=True)
    actor = ValueObject(CartActor, required=True)
    lines = HasMany(CartLine)
    generation = String(max_length=36, required=True)
    merged_sources = Text()  # JSON array of merge markers
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def one_line_per_product(self):
        product_ids = [str(line.product_id) for line in self.lines]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"lines": ["A cart holds at most one line per product"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def for_actor(cls, actor: CartActor):
        now = datetime.now(UTC)
        return cls(
            cart_id=actor.key,
            actor=actor,
            generation=uuid4().hex,
            merged_sources=json.dumps([]),
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line_for(self, product_id):
        return next((line for line in self.lines if str(line.product_id) == str(product_id)), None)

    def quantity_of(self, product_id) -> int:
        line = self.line_for(product_id)
        return line.quantity if line else 0

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total(self) -> int:
        return sum(line.unit_price * line.quantity for line in self.lines)

    @property
    def merge_marker(self) -> str:
        return f"{self.cart_id}@{self.generation}"

    def has_merged(self, marker: str) -> bool:
        return marker in self._merge_markers()

    def _merge_markers(self) -> list[str]:
        return json.loads(self.merged_sources) if self.merged_sources else []

    def snapshot(self) -> list[dict]:
        return [line.to_dict() for line in self.lines]

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def _put_line(self, product, quantity: int, now) -> None:
        """Create or overwrite the product's line with ``quantity`` (> 0)."""
        line = self.line_for(product.product_id)
        if line:
            line.quantity = quantity
            line.unit_price = product.price
            line.title = product.title
            line.updated_at = now
        else:
            self.add_lines(
                CartLine(
                    product_id=product.product_id,
                    store_id=product.store_id,
                    title=product.title,
                    quantity=quantity,
                    unit_price=product.price,
                    added_at=now,
                    updated_at=now,
                )
            )

    def add_item(self, product, quantity: int) -> int:
        """Add ``quantity`` of a product, clamped to stock. Returns the resulting line quantity."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if product.stock <= 0:
            raise OutOfStock(product.product_id, available=0)

        requested = self.quantity_of(product.product_id) + quantity
        resulting = min(requested, product.stock)
        now = datetime.now(UTC)
        self._put_line(product, resulting, now)
        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.cart_id),
                product_id=str(product.product_id),
                requested_quantity=quantity,
                line_quantity=resulting,
                clamped=resulting < requested,
            )
        )
        return resulting

    def update_quantity(self, product, quantity: int) -> int:
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            self.remove_item(product.product_id)
            return 0
        if product.stock <= 0:
            raise OutOfStock(product.product_id, available=0)

        previous = self.quantity_of(product.product_id)
        resulting = min(quantity, product.stock)
        now = datetime.now(UTC)
        self._put_line(product, resulting, now)
        self.updated_at = now

        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.cart_id),
                product_id=str(product.product_id),
                previous_quantity=previous,
                new_quantity=resulting,
            )
        )
        return resulting

    def remove_item(self, product_id) -> bool:
        """Remove a product's line. Removing a missing line is a no-op."""
        line = self.line_for(product_id)
        if line is None:
            return False

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartItemRemoved(cart_id=str(self.cart_id), product_id=str(product_id)))
        return True

    def clear(self, reason: str = "requested") -> None:
        for line in list(self.lines):
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(cart_id=str(self.cart_id), reason=reason, generation=self.generation))

    def discard(self) -> None:
        """Empty the cart and start a new generation, retiring its merge marker."""
        self.clear(reason="merged")
        self.generation = uuid4().hex

    # -------------------------------------------------------------------
    # Guest cart merging
    # -------------------------------------------------------------------
    def merge_guest_lines(self, source_cart_id: str, source_generation: str, guest_lines) -> int:
        """Fold a guest cart's lines into this cart.

        Args:
            source_cart_id: The guest cart's id.
            source_generation: The guest cart's generation at read time.
            guest_lines: ``(ProductSnapshot, guest_quantity)`` pairs.

        Returns the number of guest lines merged; 0 if this guest cart
        generation was already merged.
        """
        if self.actor.is_guest:
            raise ValidationError({"cart": ["Guest carts can only be merged into a user's cart"]})

        marker = f"{source_cart_id}@{source_generation}"
        if self.has_merged(marker):
            return 0

        now = datetime.now(UTC)
        merged = 0
        for product, guest_quantity in guest_lines:
            combined = min(self.quantity_of(product.product_id) + guest_quantity, max(product.stock, 0))
            if combined > 0:
                self._put_line(product, combined, now)
            else:
                existing = self.line_for(product.product_id)
                if existing:
                    self.remove_lines(existing)
            merged += 1

        self.merged_sources = json.dumps([*self._merge_markers(), marker])
        self.updated_at = now

        self.raise_(
            CartsMerged(
                cart_id=str(self.cart_id),
                source_cart_id=str(source_cart_id),
                source_generation=source_generation,
                lines_merged=merged,
            )
        )
        return merged
