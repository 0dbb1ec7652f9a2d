"""Thin wrapper around Anthropic async client."""
from __future__ import annotations

from functools import lru_cache

from anthropic import AsyncAnthropic

from flowsmith.config import settings

CLIENT_CACHE_SIZE = 64


@lru_cache(maxsize=CLIENT_CACHE_SIZE)
def get_anthropic_client(api_key: str) -> AsyncAnthropic:
    """Return a cached client for ``api_key``; retries are left to the caller."""
    return AsyncAnthropic(
        api_key=api_key,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,
    )
