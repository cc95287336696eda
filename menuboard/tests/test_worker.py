import unittest

from menuboard.db import InMemoryDbClient
from menuboard.push import InMemoryPushTransport
from menuboard.queue import InMemoryJobQueue
from menuboard.worker import process_next


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.queue = InMemoryJobQueue()
        self.transport = InMemoryPushTransport()

    def test_process_next_notifies_subscribers(self):
        hotel = self.db.upsert_hotel("9990001111", hotel_name="Sea View")
        self.db.upsert_subscription(
            hotel.id, {"endpoint": "https://push/1", "keys": {"p256dh": "k", "auth": "a"}}
        )
        self.assertTrue(self.queue.enqueue(hotel.id))
        self.assertFalse(self.queue.enqueue(hotel.id))

        processed = process_next(self.db, self.queue, self.transport, block=False)
        self.assertTrue(processed)
        self.assertEqual([endpoint for endpoint, _ in self.transport.sent], ["https://push/1"])
        self.assertEqual(self.queue.items, [])

    def test_process_next_no_jobs(self):
        processed = process_next(self.db, self.queue, self.transport, block=False)
        self.assertFalse(processed)


if __name__ == "__main__":
    unittest.main()
