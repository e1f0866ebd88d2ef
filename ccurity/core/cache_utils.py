"""
Caching helpers for the dashboard and report aggregations.

Report payloads are stored under keys that start with REPORTS_PREFIX so a
single pattern scan can drop all of them when the underlying rows change.
With django-redis the scan is done on the server; the local-memory backend
used in development and tests has no key listing, so it is cleared whole.
"""
from functools import wraps
import hashlib
import logging

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

DASHBOARD_CACHE_TTL = 5 * 60
REPORTS_CACHE_TTL = 10 * 60

REPORTS_PREFIX = 'reports'

_SCAN_BATCH = 200


def make_cache_key(prefix, *args, **kwargs):
    """Build `<prefix>:<digest>` from the call arguments"""
    raw = repr((args, sorted(kwargs.items())))
    digest = hashlib.md5(raw.encode('utf-8')).hexdigest()
    return f"{prefix}:{digest}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Memoise a report builder in the default cache.

        @cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}_admin")
        def admin_dashboard_payload():
            ...

    A builder returning None is never stored.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            key = make_cache_key(key_prefix, *args, **kwargs)
            payload = cache.get(key)
            if payload is None:
                logger.debug(f"Cache miss {key}")
                payload = func(*args, **kwargs)
                if payload is not None:
                    cache.set(key, payload, cache_ttl)
            else:
                logger.debug(f"Cache hit {key}")
            return payload
        return wrapper
    return decorator


def uses_redis():
    backend = settings.CACHES.get('default', {}).get('BACKEND', '')
    return 'django_redis' in backend


def _redis_keys(conn, pattern):
    return list(conn.scan_iter(match=f"*{pattern}*", count=_SCAN_BATCH))


def invalidate_cache_pattern(pattern):
    """Drop every cached entry whose key contains `pattern`"""
    if not uses_redis():
        cache.clear()
        logger.info(f"Local cache cleared ({pattern})")
        return

    try:
        from django_redis import get_redis_connection
        conn = get_redis_connection("default")
        keys = _redis_keys(conn, pattern)
        if keys:
            conn.delete(*keys)
        logger.info(f"Dropped {len(keys)} cached entries for {pattern}")
    except Exception as e:
        logger.warning(f"Cache invalidation failed for {pattern}: {e}")


def invalidate_reports_cache():
    invalidate_cache_pattern(REPORTS_PREFIX)
