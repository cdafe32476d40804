"""In-process response cache."""

from refhub.cache.response_cache import DEFAULT_TTL_SECONDS, ResponseCache

__all__ = ["DEFAULT_TTL_SECONDS", "ResponseCache"]
