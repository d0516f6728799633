"""Sign-in metrics for Turn Authorization.

Defines OpenTelemetry metrics for:
- Sign-in flows: started, completed, failed, duplicate exchanges
- Continuations: activities handed off to continuation delivery
- Token cache: hits and misses
"""

from opentelemetry import metrics

meter = metrics.get_meter(__name__)

# =============================================================================
# SIGN-IN FLOW METRICS
# =============================================================================

sign_in_flows_started = meter.create_counter(
    name="turn_auth.sign_in.started",
    description="Total sign-in flows that went pending (flow now active)",
    unit="1",
)

sign_in_flows_completed = meter.create_counter(
    name="turn_auth.sign_in.completed",
    description="Total sign-in attempts that produced a token",
    unit="1",
)

sign_in_flows_failed = meter.create_counter(
    name="turn_auth.sign_in.failed",
    description="Total sign-in attempts that ended in error",
    unit="1",
)

sign_in_duplicates = meter.create_counter(
    name="turn_auth.sign_in.duplicates",
    description="Total duplicate token exchanges ignored",
    unit="1",
)

# =============================================================================
# CONTINUATION METRICS
# =============================================================================

continuations_submitted = meter.create_counter(
    name="turn_auth.continuations.submitted",
    description="Total activities submitted for redelivery as a new turn",
    unit="1",
)

continuation_failures = meter.create_counter(
    name="turn_auth.continuations.failures",
    description="Total redelivered turns that raised",
    unit="1",
)

# =============================================================================
# TOKEN CACHE METRICS
# =============================================================================

token_cache_hits = meter.create_counter(
    name="turn_auth.token_cache.hits",
    description="Total token cache hits",
    unit="1",
)

token_cache_misses = meter.create_counter(
    name="turn_auth.token_cache.misses",
    description="Total token cache misses",
    unit="1",
)
