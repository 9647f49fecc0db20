"""Fake notification sink — records notifications for test assertions."""

from ordering.notification.port import NotificationSink


class FakeNotificationSink(NotificationSink):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_fail = False

    def configure(self, should_fail: bool = False) -> None:
        self.should_fail = should_fail

    def notify(self, recipient: str, title: str, message: str, kind: str = "order", link: str | None = None) -> None:
        if self.should_fail:
            raise ConnectionError("Notification sink unavailable")
        self.sent.append({"recipient": recipient, "title": title, "message": message, "kind": kind, "link": link})

    def reset(self) -> None:
        self.sent.clear()
        self.should_fail = False
