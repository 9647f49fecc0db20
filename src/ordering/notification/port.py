"""Notification Sink port — fire-and-forget buyer notifications."""

from abc import ABC, abstractmethod


class NotificationSink(ABC):
    @abstractmethod
    def notify(self, recipient: str, title: str, message: str, kind: str = "order", link: str | None = None) -> None:
        """Deliver a notification. Implementations may raise; callers log and carry on."""
        ...
