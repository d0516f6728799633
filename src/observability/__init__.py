"""Observability utilities and metrics for Turn Authorization."""

from .metrics import (
    continuation_failures,
    continuations_submitted,
    sign_in_duplicates,
    sign_in_flows_completed,
    sign_in_flows_failed,
    sign_in_flows_started,
    token_cache_hits,
    token_cache_misses,
)

__all__ = [
    # Sign-in metrics
    "sign_in_flows_started",
    "sign_in_flows_completed",
    "sign_in_flows_failed",
    "sign_in_duplicates",
    # Continuation metrics
    "continuations_submitted",
    "continuation_failures",
    # Token cache metrics
    "token_cache_hits",
    "token_cache_misses",
]
