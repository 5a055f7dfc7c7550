"""
Cache infrastructure module.
"""
from .redis import close_redis, get_redis

__all__ = ["get_redis", "close_redis"]
