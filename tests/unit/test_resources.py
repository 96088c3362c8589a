"""
Unit tests for resource sensing and concurrency sizing

Tests verify:
- Normal and minimal resource checks
- Bounded waiting for resources
- Worker adjustment under memory pressure
- Spawn delay adjustment
- Best-effort process limits
"""

from unittest.mock import Mock, patch

import pytest

from ingestion.config import ResourceThresholds
from ingestion.resources import (
    CheckMode,
    LimitsStatus,
    PsutilSystemStats,
    ResourceMonitor,
    ResourceSample,
    ResourceStatus,
    StaticSystemStats,
    WaitOutcome,
    WorkloadKind,
    configure_system_limits,
)


class FakeClock:
    """Monotonic clock advanced only by sleep()"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class SequenceStats:
    """Returns the given samples in order, then repeats the last one"""

    def __init__(self, *readings):
        self.readings = list(readings)

    def sample(self) -> ResourceSample:
        memory_available, load = self.readings.pop(0) if len(self.readings) > 1 else self.readings[0]
        return ResourceSample(memory_available_percent=memory_available, load_average=load)


def monitor_with(memory_used: float | None = 30.0, load: float | None = 0.5, **kwargs) -> ResourceMonitor:
    available = None if memory_used is None else 100.0 - memory_used
    return ResourceMonitor(ResourceThresholds(**kwargs), StaticSystemStats(available, load))


class TestCheckResources:
    """Test ResourceMonitor.check_resources()"""

    def test_available(self):
        """Test resources within limits"""
        assert monitor_with(30.0, 1.0).check_resources() is ResourceStatus.AVAILABLE

    def test_memory_at_limit(self):
        """Test memory use at the limit counts as constrained"""
        assert monitor_with(80.0, 0.5).check_resources() is ResourceStatus.CONSTRAINED

    def test_load_above_limit(self):
        """Test high load counts as constrained"""
        assert monitor_with(30.0, 2.5).check_resources() is ResourceStatus.CONSTRAINED

    def test_minimal_mode_is_relaxed(self):
        """Test minimal checks allow more memory and load"""
        monitor = monitor_with(85.0, 2.5)

        assert monitor.check_resources(CheckMode.NORMAL) is ResourceStatus.CONSTRAINED
        assert monitor.check_resources(CheckMode.MINIMAL) is ResourceStatus.AVAILABLE

    def test_minimal_mode_from_string(self):
        """Test the mode may be given by value"""
        assert monitor_with(85.0, 0.5).check_resources("minimal") is ResourceStatus.AVAILABLE

    def test_unknown_readings(self):
        """Test platforms without readings are never constrained"""
        assert monitor_with(None, None).check_resources() is ResourceStatus.AVAILABLE


class TestWaitForResources:
    """Test ResourceMonitor.wait_for_resources()"""

    def test_ready_immediately(self):
        """Test no sleep when resources are available"""
        clock = FakeClock()
        monitor = ResourceMonitor(ResourceThresholds(), StaticSystemStats(70.0, 0.5), clock, clock.sleep)

        assert monitor.wait_for_resources(60) is WaitOutcome.READY
        assert clock.sleeps == []

    def test_ready_after_polling(self):
        """Test polling until resources free up"""
        clock = FakeClock()
        stats = SequenceStats((5.0, 0.5), (5.0, 0.5), (70.0, 0.5))
        monitor = ResourceMonitor(ResourceThresholds(poll_interval_seconds=5.0), stats, clock, clock.sleep)

        assert monitor.wait_for_resources(60) is WaitOutcome.READY
        assert clock.sleeps == [5.0, 5.0]

    def test_timeout_never_oversleeps(self):
        """Test the last sleep is shortened to the timeout"""
        clock = FakeClock()
        monitor = ResourceMonitor(
            ResourceThresholds(poll_interval_seconds=5.0),
            StaticSystemStats(5.0, 0.5),
            clock,
            clock.sleep,
        )

        assert monitor.wait_for_resources(12) is WaitOutcome.TIMED_OUT
        assert clock.sleeps == [5.0, 5.0, 2.0]
        assert clock.now == 12.0

    def test_zero_timeout(self):
        """Test a zero timeout checks once"""
        clock = FakeClock()
        monitor = ResourceMonitor(ResourceThresholds(), StaticSystemStats(5.0, 0.5), clock, clock.sleep)

        assert monitor.wait_for_resources(0) is WaitOutcome.TIMED_OUT
        assert clock.sleeps == []


class TestAdjustWorkers:
    """Test ResourceMonitor.adjust_workers()"""

    @pytest.mark.parametrize(
        "memory_used, kind, expected",
        [
            (30.0, WorkloadKind.GENERIC, 7),
            (30.0, WorkloadKind.MEMORY_INTENSIVE, 6),
            (60.0, WorkloadKind.GENERIC, 5),
            (60.0, WorkloadKind.MEMORY_INTENSIVE, 4),
            (72.0, WorkloadKind.GENERIC, 3),
            (72.0, WorkloadKind.MEMORY_INTENSIVE, 3),
            (80.0, WorkloadKind.MEMORY_INTENSIVE, 1),
        ],
    )
    def test_memory_scaling(self, memory_used, kind, expected):
        """Test worker counts for 8 requested workers"""
        assert monitor_with(memory_used).adjust_workers(8, kind) == expected

    def test_single_worker_kept(self):
        """Test the result never drops below one worker"""
        assert monitor_with(30.0).adjust_workers(1) == 1
        assert monitor_with(95.0).adjust_workers(2, WorkloadKind.MEMORY_INTENSIVE) == 1

    def test_unknown_memory(self):
        """Test only the safety margin applies without a memory reading"""
        assert monitor_with(None).adjust_workers(8, WorkloadKind.MEMORY_INTENSIVE) == 6

    def test_invalid_request(self):
        """Test fewer than one requested worker is rejected"""
        with pytest.raises(ValueError):
            monitor_with().adjust_workers(0)


class TestAdjustProcessDelay:
    """Test ResourceMonitor.adjust_process_delay()"""

    def test_small_delay_passes_through(self):
        """Test delays at or below the low threshold are unchanged"""
        assert monitor_with(90.0, 9.0).adjust_process_delay(1.5) == 1.5
        assert monitor_with(90.0, 9.0).adjust_process_delay(2.0) == 2.0

    @pytest.mark.parametrize(
        "memory_used, load, expected",
        [
            (30.0, 0.5, 3.0),
            (60.0, 0.5, 6.0),
            (75.0, 0.5, 9.0),
            (30.0, 3.0, 6.0),
            (75.0, 3.0, 10.0),
        ],
    )
    def test_scaling(self, memory_used, load, expected):
        """Test a 3s delay under different pressure"""
        assert monitor_with(memory_used, load).adjust_process_delay(3.0) == expected

    def test_capped(self):
        """Test the delay never exceeds the maximum"""
        assert monitor_with(30.0, 0.5).adjust_process_delay(50.0) == 10.0

    def test_negative_delay(self):
        """Test negative delays become zero"""
        assert monitor_with().adjust_process_delay(-1.0) == 0.0


class TestPsutilSystemStats:
    """Test the psutil-backed statistics source"""

    def test_sample(self):
        """Test memory and load are read through psutil"""
        with patch("ingestion.resources.stats.psutil") as mock_psutil:
            mock_psutil.virtual_memory.return_value = Mock(total=200, available=50)
            mock_psutil.getloadavg.return_value = (1.5, 1.0, 0.5)

            sample = PsutilSystemStats().sample()

        assert sample.memory_available_percent == 25.0
        assert sample.memory_used_percent == 75.0
        assert sample.load_average == 1.5

    def test_load_unavailable(self):
        """Test a platform without load average reports None"""
        with patch("ingestion.resources.stats.psutil") as mock_psutil:
            mock_psutil.virtual_memory.return_value = Mock(total=100, available=40)
            mock_psutil.getloadavg.side_effect = OSError("not supported")

            sample = PsutilSystemStats().sample()

        assert sample.load_average is None
        assert sample.memory_available_percent == 40.0


class TestConfigureSystemLimits:
    """Test configure_system_limits()"""

    def fake_resource(self, soft: int, hard: int) -> Mock:
        fake = Mock()
        fake.RLIM_INFINITY = -1
        fake.getrlimit.return_value = (soft, hard)
        return fake

    def test_applied(self):
        """Test limits are raised to their targets under an unlimited hard limit"""
        fake = self.fake_resource(1024, -1)

        with patch("ingestion.resources.limits.resource", fake):
            assert configure_system_limits() is LimitsStatus.APPLIED

        assert fake.setrlimit.call_count == 3

    def test_capped_by_hard_limit(self):
        """Test a low hard limit gives a partial result"""
        fake = self.fake_resource(1024, 4096)

        with patch("ingestion.resources.limits.resource", fake):
            assert configure_system_limits() is LimitsStatus.PARTIAL

        fake.setrlimit.assert_any_call(fake.RLIMIT_NOFILE, (4096, 4096))

    def test_already_high(self):
        """Test limits above their targets are left alone"""
        fake = self.fake_resource(10 ** 12, -1)

        with patch("ingestion.resources.limits.resource", fake):
            assert configure_system_limits() is LimitsStatus.APPLIED

        fake.setrlimit.assert_not_called()

    def test_permission_denied(self):
        """Test refused changes give a partial result"""
        fake = self.fake_resource(1024, -1)
        fake.setrlimit.side_effect = ValueError("not allowed")

        with patch("ingestion.resources.limits.resource", fake):
            assert configure_system_limits() is LimitsStatus.PARTIAL

    def test_no_resource_module(self):
        """Test platforms without the resource module keep their defaults"""
        with patch("ingestion.resources.limits.resource", None):
            assert configure_system_limits() is LimitsStatus.PARTIAL
