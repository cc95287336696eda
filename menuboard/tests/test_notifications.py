import asyncio
import threading
import unittest
from unittest.mock import Mock, patch

from fastapi import BackgroundTasks
from pywebpush import WebPushException

from menuboard.db import InMemoryDbClient
from menuboard.notifications import (
    build_payload,
    dispatch_menu_notification,
    notify_hotel,
    run_menu_notification,
)
from menuboard.push import InMemoryPushTransport, PushDeliveryError, WebPushTransport
from menuboard.queue import InMemoryJobQueue


def _subscription(endpoint):
    return {"endpoint": endpoint, "keys": {"p256dh": "key", "auth": "secret"}}


class BarrierTransport:
    """Only succeeds if every send is in flight at the same time."""

    def __init__(self, parties):
        self.barrier = threading.Barrier(parties, timeout=5)

    def send(self, subscription, payload):
        self.barrier.wait()


class ExplodingDb(InMemoryDbClient):
    def list_subscriptions(self, hotel_id):
        raise RuntimeError("db down")


class NotifyHotelTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.hotel = self.db.upsert_hotel("9990001111", hotel_name="Sea View")
        self.transport = InMemoryPushTransport()

    def test_gone_subscriptions_are_pruned(self):
        for i in range(5):
            self.db.upsert_subscription(self.hotel.id, _subscription(f"https://push/{i}"))
        self.transport.failures = {"https://push/1": 404, "https://push/3": 410, "https://push/4": 500}

        result = asyncio.run(notify_hotel(self.hotel.id, db=self.db, transport=self.transport))

        self.assertEqual(result.sent, 2)
        self.assertEqual(result.failed, 3)
        self.assertEqual(result.pruned, 2)
        remaining = sorted(s.endpoint for s in self.db.list_subscriptions(self.hotel.id))
        self.assertEqual(remaining, ["https://push/0", "https://push/2", "https://push/4"])

    def test_sends_concurrently(self):
        for i in range(3):
            self.db.upsert_subscription(self.hotel.id, _subscription(f"https://push/{i}"))
        result = asyncio.run(
            notify_hotel(self.hotel.id, db=self.db, transport=BarrierTransport(3))
        )
        self.assertEqual(result.sent, 3)

    def test_unknown_hotel_is_skipped(self):
        result = asyncio.run(notify_hotel("missing", db=self.db, transport=self.transport))
        self.assertEqual((result.sent, result.failed, result.pruned), (0, 0, 0))
        self.assertEqual(self.transport.sent, [])

    def test_payload_falls_back_to_generic_name(self):
        hotel = self.db.upsert_hotel("5550001111")
        payload = build_payload(hotel)
        self.assertEqual(payload["title"], "Menu Updated")
        self.assertEqual(payload["body"], "A hotel has posted today's menu!")
        self.assertEqual(payload["url"], f"/menus/{hotel.id}")
        self.assertIn("Sea View", build_payload(self.hotel)["body"])

    def test_run_menu_notification_swallows_errors(self):
        db = ExplodingDb()
        hotel = db.upsert_hotel("1")
        with self.assertLogs("menuboard.notifications", level="ERROR"):
            asyncio.run(run_menu_notification(hotel.id, db, self.transport))

    def test_dispatch_schedules_one_background_drain(self):
        queue = InMemoryJobQueue()
        tasks = BackgroundTasks()
        for _ in range(2):
            dispatch_menu_notification(
                self.hotel.id,
                queue=queue,
                background_tasks=tasks,
                db=self.db,
                transport=self.transport,
            )
        self.assertEqual(queue.items, [self.hotel.id])
        self.assertEqual(len(tasks.tasks), 1)


class PushDeliveryErrorTests(unittest.TestCase):
    def test_gone_signal(self):
        self.assertTrue(PushDeliveryError("x", 404).is_gone)
        self.assertTrue(PushDeliveryError("x", 410).is_gone)
        self.assertFalse(PushDeliveryError("x", 500).is_gone)
        self.assertFalse(PushDeliveryError("x").is_gone)


class WebPushTransportTests(unittest.TestCase):
    def setUp(self):
        self.transport = WebPushTransport(
            vapid_private_key="private", vapid_subject="mailto:ops@example.test"
        )
        self.subscription = _subscription("https://push.example.test/a")

    @patch("menuboard.push.webpush")
    def test_send_signs_payload(self, mock_webpush):
        self.transport.send(self.subscription, {"title": "Menu Updated"})
        kwargs = mock_webpush.call_args.kwargs
        self.assertEqual(kwargs["subscription_info"], self.subscription)
        self.assertEqual(kwargs["data"], '{"title": "Menu Updated"}')
        self.assertEqual(kwargs["vapid_claims"], {"sub": "mailto:ops@example.test"})

    @patch("menuboard.push.webpush")
    def test_expired_subscription_is_gone(self, mock_webpush):
        for status_code, gone in ((404, True), (410, True), (500, False)):
            mock_webpush.side_effect = WebPushException(
                "push failed", response=Mock(status_code=status_code)
            )
            with self.assertRaises(PushDeliveryError) as ctx:
                self.transport.send(self.subscription, {})
            self.assertEqual(ctx.exception.status_code, status_code)
            self.assertEqual(ctx.exception.is_gone, gone)

    @patch("menuboard.push.webpush")
    def test_failure_without_response(self, mock_webpush):
        mock_webpush.side_effect = WebPushException("network down")
        with self.assertRaises(PushDeliveryError) as ctx:
            self.transport.send(self.subscription, {})
        self.assertFalse(ctx.exception.is_gone)


if __name__ == "__main__":
    unittest.main()
