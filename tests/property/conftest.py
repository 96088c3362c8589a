"""Hypothesis profiles for the property tests (select with HYPOTHESIS_PROFILE)."""

import os

from hypothesis import HealthCheck, settings

# The autouse environment fixture is function-scoped; it only clears variables
# and is safe to share across generated examples
SHARED = dict(suppress_health_check=[HealthCheck.function_scoped_fixture])

settings.register_profile("ci", max_examples=100, deadline=1000, **SHARED)
settings.register_profile("dev", max_examples=20, deadline=500, **SHARED)
settings.register_profile("thorough", max_examples=500, deadline=2000, **SHARED)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
