"""Real-time notification capability implemented by the chat layer."""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, target_id: str, event: str, payload: dict[str, Any]) -> None:
        """Deliver an event to every subscriber of ``target_id``."""
        ...


class LoggingNotifier:
    def notify(self, target_id: str, event: str, payload: dict[str, Any]) -> None:
        logger.info(
            "Notification emitted",
            extra={"target_id": target_id, "event": event, "payload_keys": sorted(payload)},
        )
