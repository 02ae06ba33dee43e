"""
Web push notifications (VAPID) to the browsers of a family.

Every profile keeps at most one browser subscription. Push is best effort:
a failed delivery is logged, and subscriptions the push service reports as
gone (404/410) are removed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from pywebpush import WebPushException, webpush

from household.db import PushSubscriptionRow, SqlDbClient

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = (404, 410)


class PushNotifier(Protocol):
    def notify_family(
        self,
        db: SqlDbClient,
        family_group: str,
        payload: dict,
        exclude_user_id: Optional[str] = None,
    ) -> int:
        ...


def chat_push_payload(sender_username: str) -> dict:
    return {
        "title": f"Nuovo messaggio da {sender_username}",
        "body": "Tocca per aprire la chat",
        "url": "/",
    }


def reminder_push_payload(title: str, description: Optional[str]) -> dict:
    return {"title": title, "body": description or "Promemoria", "url": "/"}


class _FamilyPushNotifier:
    def _send(self, subscription: PushSubscriptionRow, data: str) -> None:
        raise NotImplementedError

    def notify_family(
        self,
        db: SqlDbClient,
        family_group: str,
        payload: dict,
        exclude_user_id: Optional[str] = None,
    ) -> int:
        """Push ``payload`` to every subscription of the family. Returns how many were delivered."""
        data = json.dumps(payload)
        delivered = 0
        for subscription in db.list_push_subscriptions(family_group, exclude_user_id):
            try:
                self._send(subscription, data)
            except WebPushException as exc:
                status = getattr(exc.response, "status_code", None)
                if status in GONE_STATUS_CODES:
                    logger.info(
                        "Dropping expired push subscription of %s", subscription.user_id
                    )
                    db.delete(PushSubscriptionRow, subscription.id)
                else:
                    logger.warning("Push to %s failed: %s", subscription.user_id, exc)
                continue
            except Exception:
                logger.exception("Push to %s failed", subscription.user_id)
                continue
            delivered += 1
        return delivered


@dataclass
class InMemoryPushNotifier(_FamilyPushNotifier):
    """Records pushes instead of sending them."""

    sent: list = field(default_factory=list)

    def _send(self, subscription: PushSubscriptionRow, data: str) -> None:
        self.sent.append((subscription.user_id, json.loads(data)))

    def reset(self) -> None:
        self.sent.clear()


@dataclass
class WebPushNotifier(_FamilyPushNotifier):
    private_key: str
    subject: str
    ttl_seconds: int = 24 * 3600

    def _send(self, subscription: PushSubscriptionRow, data: str) -> None:
        webpush(
            subscription_info=subscription.subscription,
            data=data,
            vapid_private_key=self.private_key,
            # pywebpush mutates the claims dict.
            vapid_claims={"sub": self.subject},
            ttl=self.ttl_seconds,
        )
