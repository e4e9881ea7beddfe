from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """A reminder could not be shown."""


class NotificationSink:
    def show(self, title: str, body: str) -> None:
        raise NotImplementedError


class TrayNotificationSink(NotificationSink):
    """Native desktop toast through the pystray icon."""

    def __init__(self, icon_getter):
        self._icon_getter = icon_getter

    def show(self, title: str, body: str) -> None:
        icon = self._icon_getter()
        if icon is None or not getattr(icon, "HAS_NOTIFICATION", False):
            raise NotificationError("tray notifications unsupported on this platform")
        try:
            icon.notify(body, title)
        except Exception as e:
            raise NotificationError(f"tray notification failed: {e}") from e


class ChainNotificationSink(NotificationSink):
    """Try each sink in order until one shows the reminder."""

    def __init__(self, *sinks: NotificationSink):
        self.sinks = list(sinks)

    def show(self, title: str, body: str) -> None:
        errors = []
        for sink in self.sinks:
            try:
                sink.show(title, body)
                return
            except Exception as e:
                logger.debug("%s failed: %s", type(sink).__name__, e)
                errors.append(e)
        raise NotificationError("; ".join(str(e) for e in errors) or "no notification sinks")
