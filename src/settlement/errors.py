"""Settlement error taxonomy.

`TransferFailure` and `DuplicateWebhookEvent` never reach a buyer: the
first is recorded on the store's settlement row, the second is logged and
acknowledged to the provider.
"""

from protean.exceptions import ValidationError


class ProviderError(Exception):
    """The payment provider rejected or failed a request."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class InvalidSignature(ProviderError):
    """A webhook payload did not carry a valid provider signature."""


class TransferFailure(ProviderError):
    """A settlement transfer to one store's connected account failed."""

    def __init__(self, store_id: str, message: str, code: str | None = None) -> None:
        super().__init__(message, code=code)
        self.store_id = store_id


class DuplicateWebhookEvent(ValidationError):
    """A webhook event older than (or equal to) the last applied one."""

    def __init__(self, event_id: str, last_event_id: str | None) -> None:
        super().__init__({"event_id": [f"Event {event_id} already superseded by {last_event_id}"]})
        self.event_id = event_id
        self.last_event_id = last_event_id
