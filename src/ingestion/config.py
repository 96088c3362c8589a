"""
Runtime configuration for the ingestion pipeline.

Every component receives its settings explicitly at construction time.
IngestionConfig.from_env() builds a complete configuration from environment
variables, falling back to the defaults below for anything unset.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_OVERPASS_ENDPOINTS = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
)
DEFAULT_USER_AGENT = "OSM-Notes-Ingestion/1.0"


def _default_max_threads() -> int:
    # Leave two cores for the database and the OS
    cores = os.cpu_count() or 1
    return max(1, min(cores - 2, 16))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {raw!r}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {name}: {raw!r}")
        return default


@dataclass(frozen=True)
class PartitionSettings:
    """Controls how documents are split."""

    target_part_count: int = 8
    min_records_per_part: int = 10
    binary_threshold_bytes: int = 100 * 1024 * 1024
    block_size_bytes: int = 4 * 1024 * 1024
    local_scan_bytes: int = 64 * 1024
    record_tag: str = "note"

    def __post_init__(self):
        # A zero-byte scan window never narrows the binary search
        if self.block_size_bytes < 1:
            raise ValueError(f"block_size_bytes must be >= 1, got {self.block_size_bytes}")
        if self.local_scan_bytes < 1:
            raise ValueError(f"local_scan_bytes must be >= 1, got {self.local_scan_bytes}")


@dataclass(frozen=True)
class ResourceThresholds:
    """Memory is expressed as percent used, load as the 1-minute average."""

    max_memory_percent: float = 80.0
    max_load_average: float = 2.0
    minimal_memory_percent: float = 90.0
    minimal_load_average: float = 3.0
    poll_interval_seconds: float = 5.0
    max_process_delay_seconds: float = 10.0
    low_delay_threshold_seconds: float = 2.0


@dataclass(frozen=True)
class PoolSettings:
    max_workers: int = field(default_factory=_default_max_threads)
    process_delay_seconds: float = 2.0
    unit_timeout_seconds: float = 300.0
    max_attempts: int = 3
    retry_delay_seconds: float = 5.0
    resource_wait_seconds: float = 60.0
    deadline_seconds: float | None = None


@dataclass(frozen=True)
class OverpassSettings:
    endpoints: tuple[str, ...] = DEFAULT_OVERPASS_ENDPOINTS
    retries_per_endpoint: int = 7
    backoff_seconds: float = 20.0
    backoff_multiplier: float = 1.5
    timeout_seconds: float = 300.0
    user_agent: str = DEFAULT_USER_AGENT
    deadline_seconds: float | None = None


@dataclass(frozen=True)
class DatabaseSettings:
    host: str = "localhost"
    port: int = 5432
    database: str = "notes"
    user: str = "notes"
    password: str = ""
    min_connections: int = 1
    max_connections: int = 8


@dataclass(frozen=True)
class IngestionConfig:
    """Complete pipeline configuration."""

    partition: PartitionSettings = field(default_factory=PartitionSettings)
    resources: ResourceThresholds = field(default_factory=ResourceThresholds)
    pool: PoolSettings = field(default_factory=PoolSettings)
    overpass: OverpassSettings = field(default_factory=OverpassSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    max_failed_units: int = 0

    @classmethod
    def from_env(cls) -> "IngestionConfig":
        """
        Build configuration from environment variables.

        Environment variables:
            MAX_THREADS, PARALLEL_PROCESS_DELAY, PROCESS_TIMEOUT, MAX_ATTEMPTS,
            RETRY_DELAY, MIN_NOTES_FOR_PARALLEL, BINARY_THRESHOLD_MB,
            MAX_MEMORY_PERCENT, MAX_LOAD_AVERAGE, OVERPASS_ENDPOINTS,
            OVERPASS_RETRIES_PER_ENDPOINT, OVERPASS_BACKOFF_SECONDS,
            OVERPASS_DEADLINE_SECONDS, DBHOST, DBPORT, DBNAME, DB_USER,
            DB_PASSWORD, MAX_FAILED_UNITS
        """
        max_workers = _env_int("MAX_THREADS", _default_max_threads())

        partition = PartitionSettings(
            target_part_count=max_workers,
            min_records_per_part=_env_int("MIN_NOTES_FOR_PARALLEL", 10),
            binary_threshold_bytes=_env_int("BINARY_THRESHOLD_MB", 100) * 1024 * 1024,
        )

        resources = ResourceThresholds(
            max_memory_percent=_env_float("MAX_MEMORY_PERCENT", 80.0),
            max_load_average=_env_float("MAX_LOAD_AVERAGE", 2.0),
        )

        pool = PoolSettings(
            max_workers=max_workers,
            process_delay_seconds=_env_float("PARALLEL_PROCESS_DELAY", 2.0),
            unit_timeout_seconds=_env_float("PROCESS_TIMEOUT", 300.0),
            max_attempts=_env_int("MAX_ATTEMPTS", 3),
            retry_delay_seconds=_env_float("RETRY_DELAY", 5.0),
        )

        raw_endpoints = os.getenv("OVERPASS_ENDPOINTS", "")
        endpoints = tuple(e.strip() for e in raw_endpoints.split(",") if e.strip())
        overpass = OverpassSettings(
            endpoints=endpoints or DEFAULT_OVERPASS_ENDPOINTS,
            retries_per_endpoint=_env_int("OVERPASS_RETRIES_PER_ENDPOINT", 7),
            backoff_seconds=_env_float("OVERPASS_BACKOFF_SECONDS", 20.0),
            deadline_seconds=_env_float("OVERPASS_DEADLINE_SECONDS", 0.0) or None,
        )

        database = DatabaseSettings(
            host=os.getenv("DBHOST", "localhost"),
            port=_env_int("DBPORT", 5432),
            database=os.getenv("DBNAME", "notes"),
            user=os.getenv("DB_USER", "notes"),
            password=os.getenv("DB_PASSWORD", ""),
        )

        return cls(
            partition=partition,
            resources=resources,
            pool=pool,
            overpass=overpass,
            database=database,
            max_failed_units=_env_int("MAX_FAILED_UNITS", 0),
        )
