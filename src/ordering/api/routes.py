"""FastAPI routes for the Ordering domain — carts, checkout, orders and drivers."""

import json

from fastapi import APIRouter, Depends, HTTPException
from protean.utils.globals import current_domain

from ordering.api.dependencies import require_principal, require_role, resolve_actor
from ordering.api.schemas import (
    AddCartItemRequest,
    AdvanceDeliveryRequest,
    AssignDriverRequest,
    CancelOrderRequest,
    CartResponse,
    ConfirmCheckoutRequest,
    ConfirmCheckoutResponse,
    DriverIdResponse,
    DriverLocationRequest,
    DriverStatusRequest,
    MergeCartRequest,
    OrderItemSchema,
    OrderResponse,
    OrderStatusResponse,
    ProcessCheckoutRequest,
    ProcessCheckoutResponse,
    RegisterDriverRequest,
    StatusResponse,
    TrackingEntrySchema,
    UpdateCartItemRequest,
)
from ordering.auth.port import Principal, Role
from ordering.cart.cart import ActorKind, CartActor
from ordering.cart.items import AddCartItem, ClearCart, RemoveCartItem, UpdateCartItemQuantity, cart_view, load_cart
from ordering.cart.locks import actor_locks
from ordering.cart.login import merge_on_login
from ordering.checkout.confirmation import ConfirmCheckout
from ordering.checkout.processing import ProcessCheckout
from ordering.driver.management import RegisterDriver, SetDriverStatus, UpdateDriverLocation
from ordering.order.delivery import AdvanceDelivery, AssignDriver, AutoAssignDriver, CancelOrder
from ordering.order.order import Order

# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


async def _locked(actor: CartActor, command):
    """Run a cart command while holding the actor's mutation lock."""
    async with actor_locks.hold(actor.key):
        return current_domain.process(command, asynchronous=False)


@cart_router.get("", response_model=CartResponse)
async def get_cart(actor: CartActor = Depends(resolve_actor)) -> CartResponse:
    return CartResponse(**cart_view(load_cart(actor), actor))


@cart_router.post("/add", response_model=CartResponse)
async def add_to_cart(body: AddCartItemRequest, actor: CartActor = Depends(resolve_actor)) -> CartResponse:
    command = AddCartItem(
        actor_kind=actor.kind,
        actor_ref=actor.ref,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    return CartResponse(**await _locked(actor, command))


@cart_router.put("/update", response_model=CartResponse)
async def update_cart_item(body: UpdateCartItemRequest, actor: CartActor = Depends(resolve_actor)) -> CartResponse:
    command = UpdateCartItemQuantity(
        actor_kind=actor.kind,
        actor_ref=actor.ref,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    return CartResponse(**await _locked(actor, command))


@cart_router.delete("/remove/{product_id}", response_model=CartResponse)
async def remove_cart_item(product_id: str, actor: CartActor = Depends(resolve_actor)) -> CartResponse:
    command = RemoveCartItem(actor_kind=actor.kind, actor_ref=actor.ref, product_id=product_id)
    return CartResponse(**await _locked(actor, command))


@cart_router.delete("/clear", response_model=CartResponse)
async def clear_cart(actor: CartActor = Depends(resolve_actor)) -> CartResponse:
    command = ClearCart(actor_kind=actor.kind, actor_ref=actor.ref)
    return CartResponse(**await _locked(actor, command))


@cart_router.post("/merge", response_model=CartResponse)
async def merge_cart(body: MergeCartRequest, actor: CartActor = Depends(resolve_actor)) -> CartResponse:
    """Fold the guest cart of ``session_id`` into the signed-in user's cart."""
    if ActorKind(actor.kind) != ActorKind.USER:
        raise HTTPException(status_code=401, detail="Sign in to merge a guest cart")
    result = await merge_on_login(session_id=body.session_id, user_id=actor.ref)
    return CartResponse(**result)


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("/process", response_model=ProcessCheckoutResponse)
async def process_checkout(
    body: ProcessCheckoutRequest,
    actor: CartActor = Depends(resolve_actor),
) -> ProcessCheckoutResponse:
    command = ProcessCheckout(
        actor_kind=actor.kind,
        actor_ref=actor.ref,
        delivery_info=json.dumps(body.delivery_info.model_dump()),
    )
    result = await _locked(actor, command)
    return ProcessCheckoutResponse(**result)


@checkout_router.post("/confirm", response_model=ConfirmCheckoutResponse)
async def confirm_checkout(
    body: ConfirmCheckoutRequest,
    actor: CartActor = Depends(resolve_actor),
) -> ConfirmCheckoutResponse:
    command = ConfirmCheckout(
        actor_kind=actor.kind,
        actor_ref=actor.ref,
        payment_intent_id=body.payment_intent_id,
    )
    result = await _locked(actor, command)
    return ConfirmCheckoutResponse(**result)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        buyer_kind=order.buyer_kind,
        buyer_ref=order.buyer_ref,
        total=order.total,
        platform_fee=order.platform_fee or 0,
        primary_store_id=str(order.primary_store_id) if order.primary_store_id else None,
        payment_intent_id=order.payment_intent_id,
        driver_id=str(order.driver_id) if order.driver_id else None,
        assigned_at=order.assigned_at,
        estimated_delivery=order.estimated_delivery,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        items=[OrderItemSchema(**item.to_dict()) for item in order.items],
        tracking=[
            TrackingEntrySchema(
                driver_id=str(entry.driver_id) if entry.driver_id else None,
                status=entry.status,
                location=entry.location,
                note=entry.note,
                recorded_at=entry.recorded_at,
            )
            for entry in sorted(order.tracking, key=lambda entry: entry.recorded_at)
        ],
        created_at=order.created_at,
    )


def _assert_can_view(order: Order, principal: Principal) -> None:
    if principal.role == Role.ADMIN:
        return
    if principal.role == Role.DRIVER and str(order.driver_id) == principal.user_id:
        return
    if ActorKind(order.buyer_kind) == ActorKind.USER and order.buyer_ref == principal.user_id:
        return
    raise HTTPException(status_code=403, detail="Not allowed to access this order")


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, principal: Principal = Depends(require_principal)) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    _assert_can_view(order, principal)
    return _order_response(order)


@order_router.put("/{order_id}/assign", response_model=OrderStatusResponse)
async def assign_driver(
    order_id: str,
    body: AssignDriverRequest,
    principal: Principal = Depends(require_role(Role.ADMIN)),
) -> OrderStatusResponse:
    result = current_domain.process(AssignDriver(order_id=order_id, driver_id=body.driver_id), asynchronous=False)
    return OrderStatusResponse(**result)


@order_router.post("/{order_id}/auto-assign", response_model=OrderStatusResponse)
async def auto_assign_driver(
    order_id: str,
    principal: Principal = Depends(require_role(Role.ADMIN)),
) -> OrderStatusResponse:
    result = current_domain.process(AutoAssignDriver(order_id=order_id), asynchronous=False)
    return OrderStatusResponse(**result)


@order_router.put("/{order_id}/status", response_model=OrderStatusResponse)
async def advance_delivery(
    order_id: str,
    body: AdvanceDeliveryRequest,
    principal: Principal = Depends(require_role(Role.DRIVER)),
) -> OrderStatusResponse:
    """Driver-scoped: the calling driver must be the one assigned to the order."""
    command = AdvanceDelivery(
        order_id=order_id,
        driver_id=principal.user_id,
        status=body.status,
        location=body.location,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderStatusResponse(**result, driver_id=principal.user_id)


@order_router.put("/{order_id}/cancel", response_model=OrderStatusResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    principal: Principal = Depends(require_principal),
) -> OrderStatusResponse:
    order = current_domain.repository_for(Order).get(order_id)
    if principal.role != Role.ADMIN and order.buyer_ref != principal.user_id:
        raise HTTPException(status_code=403, detail="Only the buyer or an admin can cancel this order")

    result = current_domain.process(CancelOrder(order_id=order_id, reason=body.reason), asynchronous=False)
    return OrderStatusResponse(**result)


# ---------------------------------------------------------------------------
# Driver Router
# ---------------------------------------------------------------------------
driver_router = APIRouter(prefix="/drivers", tags=["drivers"])


def _assert_self_or_admin(driver_id: str, principal: Principal) -> None:
    if principal.role == Role.ADMIN:
        return
    if principal.role == Role.DRIVER and principal.user_id == driver_id:
        return
    raise HTTPException(status_code=403, detail="Drivers can only update their own record")


@driver_router.post("", status_code=201, response_model=DriverIdResponse)
async def register_driver(body: RegisterDriverRequest) -> DriverIdResponse:
    command = RegisterDriver(
        full_name=body.full_name,
        email=body.email,
        phone=body.phone,
        license_number=body.license_number,
        vehicle_type=body.vehicle_type,
        vehicle_plate=body.vehicle_plate,
    )
    result = current_domain.process(command, asynchronous=False)
    return DriverIdResponse(driver_id=result)


@driver_router.put("/{driver_id}/status", response_model=StatusResponse)
async def set_driver_status(
    driver_id: str,
    body: DriverStatusRequest,
    principal: Principal = Depends(require_principal),
) -> StatusResponse:
    _assert_self_or_admin(driver_id, principal)
    status = current_domain.process(SetDriverStatus(driver_id=driver_id, status=body.status), asynchronous=False)
    return StatusResponse(status=status)


@driver_router.put("/{driver_id}/location", response_model=StatusResponse)
async def update_driver_location(
    driver_id: str,
    body: DriverLocationRequest,
    principal: Principal = Depends(require_principal),
) -> StatusResponse:
    _assert_self_or_admin(driver_id, principal)
    current_domain.process(
        UpdateDriverLocation(driver_id=driver_id, latitude=body.latitude, longitude=body.longitude),
        asynchronous=False,
    )
    return StatusResponse()
