"""
Daily menu publishing.

A hotel has at most one menu per calendar day. Uploading again on the same
day replaces that day's image and note; the first upload after midnight
starts a new record. Days are compared on the server's local calendar, so
23:59 and 00:01 are different days while 00:01 and 23:59 of the same date
are not.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from menuboard.db import DbClient, MenuRecord
from menuboard.storage import DEFAULT_CONTENT_TYPE, MediaStore

logger = logging.getLogger(__name__)


def menu_day_for(moment: datetime) -> str:
    """Local calendar day key, e.g. "2024-01-31"."""
    return moment.date().isoformat()


def is_same_calendar_day(first: datetime, second: datetime) -> bool:
    return (first.year, first.month, first.day) == (second.year, second.month, second.day)


IMAGE_EXTENSIONS = {
    "image/gif": ".gif",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def image_key(hotel_id: str, now: datetime, content_type: str, prefix: str = "menus") -> str:
    extension = IMAGE_EXTENSIONS.get(content_type) or (
        mimetypes.guess_extension(content_type or "") or ""
    )
    return f"{prefix}/{hotel_id}/menu_{hotel_id}_{int(now.timestamp() * 1000)}{extension}"


@dataclass(frozen=True)
class MenuPublishResult:
    menu: MenuRecord
    updated: bool
    inline: bool

    @property
    def storage(self) -> str:
        return "inline" if self.inline else "remote"

    @property
    def message(self) -> str:
        verb = "updated" if self.updated else "uploaded"
        if self.inline:
            return f"Menu {verb} locally (inline storage)"
        return f"Menu {verb} successfully"


def publish_menu(
    db: DbClient,
    media: MediaStore,
    *,
    hotel_id: str,
    data: bytes,
    content_type: Optional[str],
    note: str = "",
    now: Optional[datetime] = None,
    key_prefix: str = "menus",
) -> MenuPublishResult:
    """
    Store the image and make it the hotel's menu for today.

    Media store failures propagate as ExternalServiceError before anything
    is written to the database.
    """
    now = now or datetime.now()
    content_type = content_type or DEFAULT_CONTENT_TYPE
    stored = media.upload_image(
        data, content_type, image_key(hotel_id, now, content_type, key_prefix)
    )
    menu, updated = db.upsert_menu_for_day(
        hotel_id,
        menu_day_for(now),
        image_url=stored.url,
        note=note or "",
        date=now.timestamp(),
    )
    logger.info(
        "Hotel %s %s menu %s for %s",
        hotel_id,
        "replaced" if updated else "created",
        menu.id,
        menu.menu_day,
    )
    return MenuPublishResult(menu=menu, updated=updated, inline=stored.inline)


def todays_menu(db: DbClient, hotel_id: str, now: Optional[datetime] = None) -> Optional[MenuRecord]:
    """The hotel's newest menu if it is dated today, else None."""
    latest = db.get_latest_menu(hotel_id)
    if latest is None:
        return None
    if not is_same_calendar_day(datetime.fromtimestamp(latest.date), now or datetime.now()):
        return None
    return latest
