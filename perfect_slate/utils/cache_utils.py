"""
Cache utilities for the Perfect Slate application
"""

import functools

from flask import current_app

from perfect_slate import cache


def cached_query(model_name, timeout=300):
    """
    Decorator for caching database query results

    Results must be plain data (dicts, lists) so they survive the Redis
    backend.

    Args:
        model_name: Name of the model for cache key generation
        timeout: Cache timeout in seconds
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            args_str = "_".join(str(arg) for arg in args)
            kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
            cache_key = f"query_{model_name}_{f.__name__}_{args_str}_{kwargs_str}"

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Query cache hit: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Query cache set: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_model_cache(model_name):
    """
    Invalidate cache entries for a model

    SimpleCache and Redis through Flask-Caching cannot delete by pattern,
    so this clears the whole cache.
    """
    try:
        cache.clear()
        current_app.logger.debug(f"Cache cleared for model: {model_name}")
    except Exception as e:
        current_app.logger.error(f"Failed to clear cache: {e}")


def get_cache_stats():
    """Cache backend information for the status endpoint"""
    return {
        "type": current_app.config.get("CACHE_TYPE", "Unknown"),
        "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
    }
