"""
Unit tests for src/utils/metrics

Covers idempotent metric registration, MetricsPublisher, ApplicationInfo
and initialize_metrics.
"""

from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry, Counter, Gauge

from utils.metrics import (
    ApplicationInfo,
    MetricsPublisher,
    get_or_create_metric,
    initialize_metrics,
)


@pytest.fixture
def registry():
    return CollectorRegistry()


class TestGetOrCreateMetric:
    """Test get_or_create_metric function"""

    def test_creates_metric(self, registry):
        """Test the factory result is returned on first use"""
        counter = get_or_create_metric(
            lambda: Counter("parts_loaded_total", "Parts loaded", registry=registry),
            "parts_loaded_total",
            registry,
        )

        counter.inc()

        assert registry.get_sample_value("parts_loaded_total") == 1.0

    def test_reuses_registered_metric(self, registry):
        """Test a second declaration returns the existing collector"""
        def factory():
            return Gauge("pool_active_workers", "Active workers", ["pool"], registry=registry)

        first = get_or_create_metric(factory, "pool_active_workers", registry)
        second = get_or_create_metric(factory, "pool_active_workers", registry)

        assert second is first

    def test_unknown_name_reraises(self, registry):
        """Test a registration conflict under another name is not hidden"""
        Gauge("pool_active_workers", "Active workers", registry=registry)

        with pytest.raises(ValueError):
            get_or_create_metric(
                lambda: Gauge("pool_active_workers", "Active workers", registry=registry),
                "some_other_name",
                registry,
            )


class TestMetricsPublisher:
    """Test MetricsPublisher class"""

    def test_init_with_defaults(self):
        """Test initialization with default port"""
        publisher = MetricsPublisher()

        assert publisher.port == 9091
        assert publisher.registry is not None
        assert publisher.is_started() is False

    @patch("utils.metrics.publisher.start_http_server")
    def test_start(self, mock_start_server, registry):
        """Test the HTTP server is started with the registry"""
        publisher = MetricsPublisher(port=9095, registry=registry)

        publisher.start()

        mock_start_server.assert_called_once_with(9095, registry=registry)
        assert publisher.is_started() is True

    @patch("utils.metrics.publisher.start_http_server")
    def test_start_twice(self, mock_start_server, registry):
        """Test a second start does not bind again"""
        publisher = MetricsPublisher(registry=registry)

        publisher.start()
        publisher.start()

        assert mock_start_server.call_count == 1

    @patch("utils.metrics.publisher.start_http_server")
    def test_port_in_use(self, mock_start_server, registry):
        """Test a taken port raises RuntimeError"""
        mock_start_server.side_effect = OSError("Address already in use")
        publisher = MetricsPublisher(port=9091, registry=registry)

        with pytest.raises(RuntimeError, match="9091"):
            publisher.start()

        assert publisher.is_started() is False


class TestApplicationInfo:
    """Test ApplicationInfo class"""

    def test_info_published(self, registry):
        """Test name and version are exported"""
        ApplicationInfo(version="2.1.0", registry=registry)

        value = registry.get_sample_value(
            "ingestion_application_info",
            {"name": "osm-notes-ingestion", "version": "2.1.0"},
        )
        assert value == 1.0

    def test_uptime(self, registry):
        """Test uptime grows from the start time"""
        info = ApplicationInfo(registry=registry)
        info._start_time -= 42

        assert info.get_uptime() >= 42
        assert registry.get_sample_value("ingestion_application_uptime_seconds") >= 42


class TestInitializeMetrics:
    """Test initialize_metrics function"""

    @patch("utils.metrics.publisher.start_http_server")
    def test_initialize(self, mock_start_server, registry):
        """Test the publisher is started and application info registered"""
        result = initialize_metrics(port=9200, version="1.2.3", registry=registry)

        assert result["publisher"].is_started() is True
        assert isinstance(result["app_info"], ApplicationInfo)
        mock_start_server.assert_called_once_with(9200, registry=registry)
