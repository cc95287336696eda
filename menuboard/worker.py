"""
Worker loop that delivers queued menu notifications.

Only needed when REDIS_URL is configured; without Redis the API process
sends notifications itself as background tasks. Each iteration also purges
one-time codes that outlived their TTL.

Run with: python -m menuboard.worker
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from menuboard.config import get_settings
from menuboard.db import DbClient
from menuboard.dependencies import get_db_client, get_push_transport, get_queue_client
from menuboard.notifications import run_menu_notification
from menuboard.push import PushTransport
from menuboard.queue import JobQueue

logger = logging.getLogger(__name__)


def process_next(
    db: Optional[DbClient] = None,
    queue: Optional[JobQueue] = None,
    transport: Optional[PushTransport] = None,
    *,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Notify the subscribers of the next queued hotel. Returns True if one was processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()
    transport = transport or get_push_transport()

    hotel_id = queue.dequeue(block=block, timeout=timeout)
    if not hotel_id:
        return False
    asyncio.run(run_menu_notification(hotel_id, db, transport))
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Blocking loop over the notification queue. Intended to be run under systemd/supervisor.
    """
    settings = get_settings()
    db = get_db_client()
    queue = get_queue_client()
    transport = get_push_transport()
    while True:
        try:
            purged = db.purge_expired_otps(settings.otp_ttl_seconds)
            if purged:
                logger.info("Purged %d expired one-time codes", purged)
        except Exception:
            logger.exception("Failed to purge expired one-time codes")
        processed = process_next(
            db, queue, transport, block=True, timeout=int(poll_interval_seconds)
        )
        if not processed:
            time.sleep(poll_interval_seconds)


def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )
    if not settings.redis_url:
        logger.warning("REDIS_URL is not set; the API sends notifications in-process")
    run_loop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
