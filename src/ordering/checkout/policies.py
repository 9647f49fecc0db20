"""Primary-store selection.

The primary store's connected account receives the single customer charge
and keeps its own share out of it; every other store is paid by transfer.
Which store plays that role is a policy choice, selected with
``PRIMARY_STORE_POLICY``.
"""

import os
from abc import ABC, abstractmethod
from collections import OrderedDict


class PrimaryStorePolicy(ABC):
    name: str = ""

    @abstractmethod
    def choose(self, lines: list[dict]) -> str:
        """Return the primary store id for a non-empty list of cart lines."""
        ...


class FirstLinePolicy(PrimaryStorePolicy):
    """The store owning the first cart line."""

    name = "first_line"

    def choose(self, lines: list[dict]) -> str:
        return str(lines[0]["store_id"])


class LargestShareStorePolicy(PrimaryStorePolicy):
    """The store with the largest gross share; ties go to the earliest line."""

    name = "largest_share"

    def choose(self, lines: list[dict]) -> str:
        shares: OrderedDict[str, int] = OrderedDict()
        for line in lines:
            store_id = str(line["store_id"])
            shares[store_id] = shares.get(store_id, 0) + line["unit_price"] * line["quantity"]
        return max(shares, key=lambda store_id: shares[store_id])


_POLICIES = {policy.name: policy for policy in (FirstLinePolicy, LargestShareStorePolicy)}


def get_policy(name: str | None = None) -> PrimaryStorePolicy:
    name = name or os.environ.get("PRIMARY_STORE_POLICY", FirstLinePolicy.name)
    try:
        return _POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown primary store policy: {name}") from None
