"""
Best-effort process limits.

Raises soft limits for open files, processes and address space towards the
targets below, never above the hard limit and never lowering a limit that
is already higher. Platforms without the resource module, or processes
without permission, end up with PARTIAL and keep their defaults.
"""

import logging
from enum import Enum

try:
    import resource
except ImportError:  # Windows has no resource module
    resource = None

logger = logging.getLogger(__name__)

GIB = 1024 ** 3

# (name, soft target)
LIMIT_TARGETS = (
    ("RLIMIT_NOFILE", 65536),
    ("RLIMIT_NPROC", 32768),
    ("RLIMIT_AS", 2 * GIB),
)


class LimitsStatus(str, Enum):
    APPLIED = "applied"
    PARTIAL = "partial"


def _raise_soft_limit(limit: int, target: int) -> bool:
    soft, hard = resource.getrlimit(limit)

    if soft == resource.RLIM_INFINITY or soft >= target:
        return True

    new_soft = target if hard == resource.RLIM_INFINITY else min(target, hard)
    if new_soft > soft:
        resource.setrlimit(limit, (new_soft, hard))
    return new_soft >= target


def configure_system_limits() -> LimitsStatus:
    """
    Raise process resource limits for parallel processing.

    Returns:
        APPLIED when every limit reached its target, PARTIAL otherwise
    """
    if resource is None:
        logger.warning("resource module not available, keeping default process limits")
        return LimitsStatus.PARTIAL

    status = LimitsStatus.APPLIED

    for name, target in LIMIT_TARGETS:
        limit = getattr(resource, name, None)
        if limit is None:
            logger.debug(f"{name} not supported on this platform")
            status = LimitsStatus.PARTIAL
            continue

        try:
            if not _raise_soft_limit(limit, target):
                logger.info(f"{name} capped below {target} by the hard limit")
                status = LimitsStatus.PARTIAL
        except (OSError, ValueError) as e:
            logger.warning(f"Could not raise {name} to {target}: {e}")
            status = LimitsStatus.PARTIAL

    logger.info(f"System limits configuration: {status.value}")
    return status
