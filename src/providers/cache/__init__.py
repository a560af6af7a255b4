"""Cache providers.

MemoryCacheProvider is an in-process TTL cache used for chat answers so the
same question over the same recent feedback does not hit the LLM twice.
It is not shared across processes; a Redis adapter implementing
ICacheProvider can replace it without touching the chat service.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
