"""
"Menu updated" push fan-out.

Every subscription of a hotel is sent to concurrently. Endpoints the push
service reports as gone (404/410) are deleted; other failures are logged
and the subscription is kept for the next upload.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from fastapi import BackgroundTasks
from redis import exceptions as redis_exceptions

from menuboard.db import DbClient, HotelRecord, SubscriptionRecord
from menuboard.push import PushDeliveryError, PushTransport
from menuboard.queue import InMemoryJobQueue, JobQueue

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Menu Updated"


@dataclass
class FanoutResult:
    sent: int = 0
    failed: int = 0
    pruned: int = 0


def build_payload(hotel: HotelRecord) -> dict:
    display_name = hotel.hotel_name or hotel.name or "A hotel"
    return {
        "title": NOTIFICATION_TITLE,
        "body": f"{display_name} has posted today's menu!",
        "url": f"/menus/{hotel.id}",
    }


async def _deliver(
    transport: PushTransport, subscription: SubscriptionRecord, payload: dict
) -> None:
    await asyncio.to_thread(transport.send, subscription.subscription, payload)


async def notify_hotel(
    hotel_id: str, *, db: DbClient, transport: PushTransport
) -> FanoutResult:
    result = FanoutResult()
    hotel = await asyncio.to_thread(db.get_hotel, hotel_id)
    if hotel is None:
        logger.warning("Skipping notification for unknown hotel %s", hotel_id)
        return result

    subscriptions = await asyncio.to_thread(db.list_subscriptions, hotel_id)
    if not subscriptions:
        return result

    payload = build_payload(hotel)
    outcomes = await asyncio.gather(
        *(_deliver(transport, sub, payload) for sub in subscriptions),
        return_exceptions=True,
    )
    for subscription, outcome in zip(subscriptions, outcomes):
        if outcome is None:
            result.sent += 1
            continue
        result.failed += 1
        if isinstance(outcome, PushDeliveryError) and outcome.is_gone:
            await asyncio.to_thread(db.delete_subscription_by_id, subscription.id)
            result.pruned += 1
            logger.info(
                "Removed expired subscription %s (status %s)",
                subscription.endpoint,
                outcome.status_code,
            )
        else:
            logger.warning(
                "Push to %s failed: %s", subscription.endpoint, outcome
            )
    return result


async def run_menu_notification(
    hotel_id: str, db: DbClient, transport: PushTransport
) -> None:
    """Error boundary around notify_hotel for detached callers."""
    try:
        result = await notify_hotel(hotel_id, db=db, transport=transport)
    except Exception:
        logger.exception("Menu notification for hotel %s failed", hotel_id)
        return
    logger.info(
        "Notified hotel %s subscribers: sent=%d failed=%d pruned=%d",
        hotel_id,
        result.sent,
        result.failed,
        result.pruned,
    )


async def drain_queue(queue: JobQueue, db: DbClient, transport: PushTransport) -> int:
    processed = 0
    while True:
        hotel_id = await asyncio.to_thread(queue.dequeue, block=False)
        if hotel_id is None:
            return processed
        await run_menu_notification(hotel_id, db, transport)
        processed += 1


def dispatch_menu_notification(
    hotel_id: str,
    *,
    queue: JobQueue,
    background_tasks: BackgroundTasks,
    db: DbClient,
    transport: PushTransport,
) -> None:
    """
    Queue a fan-out for `hotel_id` without waiting for it.

    With the in-memory queue the fan-out runs as a background task after the
    response is sent; otherwise `menuboard.worker` picks it up.
    """
    try:
        queued = queue.enqueue(hotel_id)
    except redis_exceptions.RedisError:
        logger.exception("Could not queue notification for hotel %s", hotel_id)
        return
    if queued and isinstance(queue, InMemoryJobQueue):
        background_tasks.add_task(drain_queue, queue, db, transport)
