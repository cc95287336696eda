import unittest
from datetime import datetime

from menuboard.db import InMemoryDbClient
from menuboard.errors import ExternalServiceError
from menuboard.menus import is_same_calendar_day, menu_day_for, publish_menu, todays_menu
from menuboard.storage import InlineMediaStore, InMemoryMediaStore


class FailingMediaStore:
    def upload_image(self, data, content_type, key):
        raise ExternalServiceError("bucket unreachable")


class PublishMenuTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.hotel = self.db.upsert_hotel("9990001111", hotel_name="Sea View")
        self.media = InMemoryMediaStore()

    def _publish(self, now, note=""):
        return publish_menu(
            self.db,
            self.media,
            hotel_id=self.hotel.id,
            data=b"img",
            content_type="image/jpeg",
            note=note,
            now=now,
        )

    def test_same_day_upload_updates_in_place(self):
        first = self._publish(datetime(2024, 1, 1, 0, 1), note="breakfast")
        second = self._publish(datetime(2024, 1, 1, 23, 59), note="dinner")

        self.assertFalse(first.updated)
        self.assertTrue(second.updated)
        self.assertEqual(first.menu.id, second.menu.id)
        self.assertEqual(len(self.db.menus), 1)
        stored = self.db.get_latest_menu(self.hotel.id)
        self.assertEqual(stored.note, "dinner")
        self.assertEqual(stored.image_url, second.menu.image_url)

    def test_midnight_rollover_creates_new_record(self):
        first = self._publish(datetime(2024, 1, 1, 23, 59))
        second = self._publish(datetime(2024, 1, 2, 0, 1))

        self.assertFalse(second.updated)
        self.assertNotEqual(first.menu.id, second.menu.id)
        menus, total = self.db.list_hotel_menus(self.hotel.id)
        self.assertEqual(total, 2)
        self.assertEqual([m.menu_day for m in menus], ["2024-01-02", "2024-01-01"])

    def test_inline_fallback_builds_data_uri(self):
        result = publish_menu(
            self.db,
            InlineMediaStore(),
            hotel_id=self.hotel.id,
            data=b"img",
            content_type="image/png",
        )
        self.assertTrue(result.inline)
        self.assertEqual(result.storage, "inline")
        self.assertEqual(result.menu.image_url, "data:image/png;base64,aW1n")
        self.assertEqual(result.message, "Menu uploaded locally (inline storage)")

    def test_storage_failure_writes_nothing(self):
        with self.assertRaises(ExternalServiceError):
            publish_menu(
                self.db,
                FailingMediaStore(),
                hotel_id=self.hotel.id,
                data=b"img",
                content_type="image/png",
            )
        self.assertEqual(self.db.menus, {})

    def test_remote_key_uses_extension(self):
        self._publish(datetime(2024, 1, 1, 12, 0))
        (key,) = self.media.stored_objects.keys()
        self.assertTrue(key.startswith(f"menus/{self.hotel.id}/menu_{self.hotel.id}_"))
        self.assertTrue(key.endswith(".jpg"))

    def test_todays_menu(self):
        self._publish(datetime(2024, 1, 1, 8, 0))
        self.assertIsNotNone(todays_menu(self.db, self.hotel.id, datetime(2024, 1, 1, 22, 0)))
        self.assertIsNone(todays_menu(self.db, self.hotel.id, datetime(2024, 1, 2, 0, 0)))


class CalendarDayTests(unittest.TestCase):
    def test_calendar_day_equality(self):
        self.assertTrue(
            is_same_calendar_day(datetime(2024, 1, 1, 0, 1), datetime(2024, 1, 1, 23, 59))
        )
        self.assertFalse(
            is_same_calendar_day(datetime(2024, 1, 1, 23, 59), datetime(2024, 1, 2, 0, 1))
        )
        self.assertFalse(
            is_same_calendar_day(datetime(2023, 1, 1, 12, 0), datetime(2024, 1, 1, 12, 0))
        )

    def test_menu_day_for(self):
        self.assertEqual(menu_day_for(datetime(2024, 3, 9, 18, 30)), "2024-03-09")


if __name__ == "__main__":
    unittest.main()
