import unittest
import asyncio
import sys
import os

# Add parent dir to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.scheduler import PeriodicScheduler


class TestPeriodicScheduler(unittest.IsolatedAsyncioTestCase):
    async def test_does_not_fire_immediately(self):
        fired = []
        scheduler = PeriodicScheduler()
        scheduler.arm(0.05, lambda: fired.append(1))

        await asyncio.sleep(0)
        self.assertEqual(fired, [])
        self.assertTrue(scheduler.armed)
        scheduler.cancel()

    async def test_fires_repeatedly(self):
        fired = []
        scheduler = PeriodicScheduler()
        scheduler.arm(0.01, lambda: fired.append(asyncio.get_running_loop().time()))

        await asyncio.sleep(0.1)
        scheduler.cancel()

        self.assertGreaterEqual(len(fired), 3)
        self.assertEqual(fired, sorted(fired))

    async def test_cancel_drops_pending_firing(self):
        fired = []
        scheduler = PeriodicScheduler()
        scheduler.arm(0.01, lambda: fired.append(1))

        await asyncio.sleep(0.035)
        scheduler.cancel()
        count = len(fired)

        await asyncio.sleep(0.05)
        self.assertEqual(len(fired), count)
        self.assertFalse(scheduler.armed)

    async def test_cancel_is_idempotent(self):
        scheduler = PeriodicScheduler()
        scheduler.cancel()
        scheduler.arm(1.0, lambda: None)
        scheduler.cancel()
        scheduler.cancel()
        self.assertFalse(scheduler.armed)

    async def test_callback_can_cancel_itself(self):
        fired = []
        scheduler = PeriodicScheduler()

        def callback():
            fired.append(1)
            scheduler.cancel()

        scheduler.arm(0.01, callback)
        await asyncio.sleep(0.08)
        self.assertEqual(fired, [1])

    async def test_rearm_replaces_previous_timer(self):
        first, second = [], []
        scheduler = PeriodicScheduler()
        scheduler.arm(0.01, lambda: first.append(1))
        scheduler.arm(0.01, lambda: second.append(1))

        await asyncio.sleep(0.05)
        scheduler.cancel()
        self.assertEqual(first, [])
        self.assertGreater(len(second), 0)

    async def test_rejects_non_positive_interval(self):
        with self.assertRaises(ValueError):
            PeriodicScheduler().arm(0, lambda: None)


if __name__ == "__main__":
    unittest.main()
