"""Login-time cart merge.

The merge is an awaited step of the login flow: the authenticated cart is
only returned once the guest lines are in it. Transient failures are
retried with exponential backoff; domain errors are not.
"""

import os

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from ordering.cart.cart import CartActor
from ordering.cart.locks import actor_locks
from ordering.cart.merge import MergeGuestCart

logger = structlog.get_logger(__name__)


def _transient(exc: BaseException) -> bool:
    return not isinstance(exc, (ValidationError, ObjectNotFoundError))


def merge_attempts() -> int:
    return int(os.environ.get("CART_MERGE_ATTEMPTS", "3"))


def _log_retry(retry_state) -> None:
    logger.warning(
        "Retrying guest cart merge",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


async def merge_on_login(session_id: str, user_id: str, attempts: int | None = None) -> dict:
    """Merge the guest cart for ``session_id`` into ``user_id``'s cart and return the user's cart."""
    guest_key = CartActor.guest(session_id).key
    user_key = CartActor.user(user_id).key

    retrying = AsyncRetrying(
        retry=retry_if_exception(_transient),
        stop=stop_after_attempt(attempts or merge_attempts()),
        wait=wait_exponential_jitter(initial=0.25, max=5.0),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            async with actor_locks.hold(guest_key, user_key):
                result = current_domain.process(
                    MergeGuestCart(session_id=session_id, user_id=user_id),
                    asynchronous=False,
                )

    logger.info("Guest cart merged on login", user_id=user_id, lines_merged=result["lines_merged"])
    return result
