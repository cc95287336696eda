"""
Web push delivery.

`WebPushTransport` sends VAPID-signed notifications with pywebpush; the
in-memory transport records deliveries for local runs and tests.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from pywebpush import WebPushException, webpush

logger = logging.getLogger(__name__)

# Push services answer 404/410 for subscriptions that will never work again.
GONE_STATUS_CODES = frozenset({404, 410})


class PushDeliveryError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_gone(self) -> bool:
        return self.status_code in GONE_STATUS_CODES


class PushTransport(Protocol):
    def send(self, subscription: dict, payload: dict) -> None:
        ...


@dataclass
class WebPushTransport:
    vapid_private_key: str
    vapid_subject: str
    ttl: int = 24 * 60 * 60

    def send(self, subscription: dict, payload: dict) -> None:
        try:
            webpush(
                subscription_info=subscription,
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
            )
        except WebPushException as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            raise PushDeliveryError(str(exc), status_code=status_code) from exc


@dataclass
class InMemoryPushTransport:
    """Records deliveries; endpoints listed in `failures` raise instead."""

    sent: list[tuple[str, dict]] = field(default_factory=list)
    failures: dict[str, Optional[int]] = field(default_factory=dict)

    def send(self, subscription: dict, payload: dict) -> None:
        endpoint = subscription.get("endpoint", "")
        if endpoint in self.failures:
            raise PushDeliveryError(
                f"Delivery to {endpoint} failed", status_code=self.failures[endpoint]
            )
        logger.info("[MOCK PUSH] %s -> %s", payload.get("title"), endpoint)
        self.sent.append((endpoint, payload))
