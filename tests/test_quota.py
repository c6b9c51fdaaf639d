import unittest

from nomadconnect.core.errors import InvalidInput, QuotaExceeded
from nomadconnect.core.radar_config import (
    COMPATIBILITY_CHECK,
    RADAR_SCAN,
    UNLIMITED,
    QuotaSettings,
    load_tier_limits,
)
from nomadconnect.repository.memory import MemoryRepository
from nomadconnect.services.quota import QuotaTracker

from support import FakeClock


class QuotaTrackerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.repo = MemoryRepository()
        limits = load_tier_limits(None)
        limits[RADAR_SCAN]["starter"] = 3
        self.tracker = QuotaTracker(self.repo, QuotaSettings(tier_limits=limits), clock=self.clock)

    def _use(self, times: int, tier: str = "starter", operation: str = RADAR_SCAN) -> None:
        for _ in range(times):
            self.tracker.check("u1", tier, operation)
            self.tracker.increment("u1", operation)

    def test_limit_then_exceeded(self) -> None:
        self._use(3)

        with self.assertRaises(QuotaExceeded) as ctx:
            self.tracker.check("u1", "starter", RADAR_SCAN)

        err = ctx.exception
        self.assertEqual(err.limit, 3)
        self.assertEqual(err.used, 3)
        self.assertEqual(err.tier, "starter")
        self.assertEqual(err.status_code, 429)
        self.assertTrue(err.extras()["requires_upgrade"])

    def test_window_is_not_reset_at_exactly_24_hours(self) -> None:
        self._use(3)
        self.clock.advance(hours=24)

        with self.assertRaises(QuotaExceeded):
            self.tracker.check("u1", "starter", RADAR_SCAN)

    def test_window_resets_after_24_hours(self) -> None:
        self._use(3)
        self.clock.advance(hours=24, seconds=1)

        status = self.tracker.check("u1", "starter", RADAR_SCAN)
        self.assertEqual(status.used, 0)
        self.assertEqual(self.tracker.increment("u1", RADAR_SCAN), 1)
        self.assertEqual(self.repo.get_quota("u1", RADAR_SCAN).window_started_at, self.clock.now)

    def test_unlimited_tier_never_blocks(self) -> None:
        self._use(50, tier="lifetime")

        status = self.tracker.check("u1", "lifetime", RADAR_SCAN)
        self.assertTrue(status.unlimited)
        self.assertEqual(status.limit, UNLIMITED)
        self.assertEqual(status.used, 50)

    def test_unknown_or_missing_tier_uses_default_limit(self) -> None:
        self.assertEqual(self.tracker.limit_for(RADAR_SCAN, "platinum"), 3)
        self.assertEqual(self.tracker.limit_for(RADAR_SCAN, None), 3)
        self.assertEqual(self.tracker.limit_for(RADAR_SCAN, "explorer"), 15)

    def test_unknown_operation_is_invalid(self) -> None:
        with self.assertRaises(InvalidInput):
            self.tracker.check("u1", "starter", "teleport")

    def test_operations_are_counted_separately(self) -> None:
        self._use(3)
        status = self.tracker.check("u1", "starter", COMPATIBILITY_CHECK)
        self.assertEqual(status.used, 0)

    def test_usage_reports_each_operation(self) -> None:
        self._use(2)
        self._use(1, operation=COMPATIBILITY_CHECK)

        usage = self.tracker.usage("u1", tier="explorer")
        self.assertEqual(usage[RADAR_SCAN].used, 2)
        self.assertEqual(usage[RADAR_SCAN].limit, 15)
        self.assertEqual(usage[COMPATIBILITY_CHECK].used, 1)

    def test_usage_after_window_reads_zero_without_writing(self) -> None:
        self._use(2)
        self.clock.advance(days=2)

        usage = self.tracker.usage("u1")
        self.assertEqual(usage[RADAR_SCAN].used, 0)
        self.assertIsNone(usage[RADAR_SCAN].limit)
        self.assertEqual(self.repo.get_quota("u1", RADAR_SCAN).count, 2)


class TierLimitLoadingTests(unittest.TestCase):
    def test_defaults(self) -> None:
        limits = load_tier_limits(None)
        self.assertEqual(limits[RADAR_SCAN]["starter"], 2)
        self.assertEqual(limits[COMPATIBILITY_CHECK]["pro"], 15)
        self.assertEqual(limits[RADAR_SCAN]["adventurer"], UNLIMITED)

    def test_json_overrides_merge_over_defaults(self) -> None:
        limits = load_tier_limits('{"radarScan": {"starter": 5, "team": 40}}')
        self.assertEqual(limits[RADAR_SCAN]["starter"], 5)
        self.assertEqual(limits[RADAR_SCAN]["team"], 40)
        self.assertEqual(limits[RADAR_SCAN]["explorer"], 15)
        self.assertEqual(limits[COMPATIBILITY_CHECK]["starter"], 2)


if __name__ == "__main__":
    unittest.main()
