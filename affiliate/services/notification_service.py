"""
Notification service.

Outbound affiliate events. Delivery (email, push, ...) lives outside the
core; the default notifier only records the event.
"""

from typing import Any, Protocol

from loguru import logger


# Event types
REFERRAL_REGISTERED = "referral_registered"
COMMISSION_CALCULATED = "commission_calculated"


class Notifier(Protocol):
    """Anything that can deliver an event to a user."""

    async def notify(
        self, user_id: int, event_type: str, payload: dict[str, Any]
    ) -> None:
        ...


class LoggingNotifier:
    """Notifier that only writes the event to the log."""

    async def notify(
        self, user_id: int, event_type: str, payload: dict[str, Any]
    ) -> None:
        logger.info(
            f"Notification {event_type} for user {user_id}",
            extra={"user_id": user_id, "event_type": event_type, **payload},
        )


async def send_notification(
    notifier: Notifier,
    user_id: int,
    event_type: str,
    payload: dict[str, Any],
) -> bool:
    """
    Deliver one event, never failing the caller.

    Notifications are sent after the triggering data is committed, so a
    delivery error must not surface as a failure of the operation itself.

    Args:
        notifier: Notifier to use
        user_id: Recipient user ID
        event_type: Event name
        payload: Event data

    Returns:
        True if notification sent successfully
    """
    try:
        await notifier.notify(user_id, event_type, payload)
        return True
    except Exception as e:
        logger.warning(
            "Failed to send notification",
            extra={
                "user_id": user_id,
                "event_type": event_type,
                "error": str(e),
            },
        )
        return False
