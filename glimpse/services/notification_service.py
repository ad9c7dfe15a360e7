"""Notification dispatch boundary for the Glimpse matching service.

The like/match core never delivers notifications itself. It collects
:class:`NotificationIntent` objects while its transaction is open and hands
them to a :class:`NotificationDispatcher` after commit. Delivery failures are
logged and reported, never raised to the caller.
"""

from typing import Any, Dict, Iterable, List, Protocol

import sentry_sdk

from glimpse.models.notification import NotificationIntent, NotificationKind
from glimpse.utils.logging import get_logger, log_error

logger = get_logger(__name__)


class Notifier(Protocol):
    """Delivery capability: persists the notification record and pushes it."""

    def notify(self, user_id: str, kind: NotificationKind, payload: Dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Notifier that only records intents in the structured log."""

    def notify(self, user_id: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        logger.info("Notification intent", user_id=user_id, kind=kind.value, payload=payload)


def like_received_intent(to_user_id: str, from_user_id: str, group_id: str) -> NotificationIntent:
    """Build the intent telling ``to_user_id`` that someone in the group likes them."""
    return NotificationIntent(
        user_id=to_user_id,
        kind=NotificationKind.LIKE_RECEIVED,
        payload={"from_user_id": from_user_id, "group_id": group_id},
    )


def match_created_intents(user_a: str, user_b: str, match_id: str) -> List[NotificationIntent]:
    """Build one match intent per participant, each naming the counterpart."""
    return [
        NotificationIntent(
            user_id=user_id,
            kind=NotificationKind.MATCH_CREATED,
            payload={"match_id": match_id, "matched_user_id": counterpart},
        )
        for user_id, counterpart in ((user_a, user_b), (user_b, user_a))
    ]


class NotificationDispatcher:
    """Delivers intents through a notifier after the core transaction commits."""

    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    def dispatch(self, intents: Iterable[NotificationIntent]) -> int:
        """
        Deliver intents one by one.

        Args:
            intents (Iterable[NotificationIntent]): Intents collected by a committed operation.

        Returns:
            int: Number of intents delivered without error.
        """
        delivered = 0
        for intent in intents:
            with sentry_sdk.start_span(op="notification.dispatch", name=intent.kind.value) as span:
                try:
                    self.notifier.notify(intent.user_id, intent.kind, intent.payload)
                    delivered += 1
                except Exception as e:
                    span.set_status("internal_error")
                    sentry_sdk.capture_exception(e)
                    log_error(
                        logger,
                        e,
                        "Failed to dispatch notification",
                        extra={"user_id": intent.user_id, "kind": intent.kind.value},
                    )
        return delivered
