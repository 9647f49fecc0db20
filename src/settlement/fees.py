"""Platform fee and per-store split arithmetic.

All amounts are integer minor units. The fee rate is a Decimal and every
rounding step is ROUND_HALF_UP. The primary store absorbs whatever rounding
remainder is left after the non-primary stores' fees are taken, within
[0, its own gross], so that

    sum(net_transfer) + primary retained == total - platform_fee

holds exactly for every order.
"""

import os
from collections import OrderedDict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

DEFAULT_FEE_RATE = "0.03"


def platform_fee_rate() -> Decimal:
    """Configured platform fee rate (``PLATFORM_FEE_RATE``, default 3%)."""
    rate = Decimal(os.environ.get("PLATFORM_FEE_RATE", DEFAULT_FEE_RATE))
    if rate < 0 or rate >= 1:
        raise ValueError(f"Platform fee rate must be in [0, 1), got {rate}")
    return rate


def round_half_up(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def platform_fee(total: int, rate: Decimal | None = None) -> int:
    rate = platform_fee_rate() if rate is None else rate
    return round_half_up(Decimal(total) * rate)


@dataclass(frozen=True)
class StoreShare:
    """One store's slice of an order."""

    store_id: str
    gross_share: int
    fee_share: int
    net_transfer: int
    retained_amount: int
    is_primary: bool


def gross_by_store(items: list[dict]) -> "OrderedDict[str, int]":
    """Sum ``unit_price * quantity`` per store, preserving first-seen order."""
    totals: OrderedDict[str, int] = OrderedDict()
    for item in items:
        store_id = str(item["store_id"])
        totals[store_id] = totals.get(store_id, 0) + int(item["unit_price"]) * int(item["quantity"])
    return totals


def _shift_fee(fees: dict[str, int], exact: dict[str, Decimal], gross: dict[str, int], delta: int) -> None:
    """Move ``delta`` fee units onto (positive) or off (negative) the non-primary stores.

    Units move one at a time. Stores whose rounding cost the platform most
    take extra fee first; stores whose rounding favoured it most give fee
    back first. No fee share leaves ``[0, gross]``.
    """
    step = 1 if delta > 0 else -1
    order = sorted(fees, key=lambda store_id: fees[store_id] - exact[store_id], reverse=step < 0)
    while delta:
        moved = False
        for store_id in order:
            if delta == 0:
                break
            candidate = fees[store_id] + step
            if 0 <= candidate <= gross[store_id]:
                fees[store_id] = candidate
                delta -= step
                moved = True
        if not moved:
            raise ValueError("Platform fee cannot be split across the order's stores")


def split_order(
    items: list[dict],
    primary_store_id: str,
    rate: Decimal | None = None,
    fee: int | None = None,
) -> list[StoreShare]:
    """Split an order's proceeds across the stores that sold its items.

    Args:
        items: Order items, each with ``store_id``, ``unit_price`` and ``quantity``.
        primary_store_id: Store whose connected account received the charge.
        rate: Fee rate override; defaults to the configured rate.
        fee: Platform fee already fixed on the charge. When given it is used
            as-is and the primary store absorbs any difference.

    The primary store's fee share is kept within ``[0, primary gross]``.
    When the other stores' rounded fees would push it outside that range
    (a small primary share among many rounded ones), the overflow is moved
    back onto the other stores' fee shares instead.
    """
    rate = platform_fee_rate() if rate is None else rate
    gross = gross_by_store(items)
    if primary_store_id not in gross:
        raise ValueError(f"Primary store {primary_store_id} sold nothing on this order")

    total = sum(gross.values())
    fee = platform_fee(total, rate) if fee is None else fee
    if not 0 <= fee <= total:
        raise ValueError(f"Platform fee {fee} is outside [0, {total}]")

    secondary = {store_id: amount for store_id, amount in gross.items() if store_id != primary_store_id}
    exact = {store_id: Decimal(amount) * rate for store_id, amount in secondary.items()}
    fees = {store_id: round_half_up(exact[store_id]) for store_id in secondary}

    primary_gross = gross[primary_store_id]
    primary_fee = min(max(fee - sum(fees.values()), 0), primary_gross)
    _shift_fee(fees, exact, secondary, fee - primary_fee - sum(fees.values()))

    shares = [
        StoreShare(
            store_id=primary_store_id,
            gross_share=primary_gross,
            fee_share=primary_fee,
            net_transfer=0,
            retained_amount=primary_gross - primary_fee,
            is_primary=True,
        )
    ]
    for store_id, amount in secondary.items():
        shares.append(
            StoreShare(
                store_id=store_id,
                gross_share=amount,
                fee_share=fees[store_id],
                net_transfer=amount - fees[store_id],
                retained_amount=0,
                is_primary=False,
            )
        )
    return shares
