"""
Worker pool used to fan out per-resource collection within a scrape.
"""

from .thread_pool import ManagedThreadPoolExecutor, ThreadPoolConfig

__all__ = [
    "ThreadPoolConfig",
    "ManagedThreadPoolExecutor",
]
