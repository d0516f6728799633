"""In-process cache of tokens acquired by authorization handlers.

The cache belongs to the orchestrator instance, not to a turn or a user:
every turn served by the same orchestrator sees the same entries. Use one
orchestrator per user (or per single-tenant deployment) when that matters.

Keys follow the dispatcher's handler name matching, so "Graph" and "graph"
share one entry.
"""

import logging

from domain.models import TokenResponse
from observability.metrics import token_cache_hits, token_cache_misses

log = logging.getLogger(__name__)


class TokenCache:
    """Mapping of handler name to the last token acquired by that handler."""

    def __init__(self) -> None:
        self._tokens: dict[str, TokenResponse] = {}

    @staticmethod
    def _key(handler_name: str) -> str:
        return handler_name.lower()

    def __contains__(self, handler_name: object) -> bool:
        return isinstance(handler_name, str) and self._key(handler_name) in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def get(self, handler_name: str) -> TokenResponse | None:
        token_response = self._tokens.get(self._key(handler_name))
        if token_response is None:
            token_cache_misses.add(1, {"handler": handler_name})
        else:
            token_cache_hits.add(1, {"handler": handler_name})
        return token_response

    def set(self, handler_name: str, token_response: TokenResponse) -> None:
        self._tokens[self._key(handler_name)] = token_response
        log.debug(f"Cached token for handler '{handler_name}'")

    def evict(self, handler_name: str) -> None:
        if self._tokens.pop(self._key(handler_name), None) is not None:
            log.debug(f"Evicted cached token for handler '{handler_name}'")
