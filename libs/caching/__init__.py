"""
Caching utilities for curriculum generation.

This module provides:
- Redis client management
- Cache key normalization (company name, role family)
- The TTL-keyed discovery research cache
"""

from libs.caching.discovery_cache import CacheEntry, DiscoveryCache, get_discovery_cache
from libs.caching.key_normalizer import extract_role_family, normalize_company_name
from libs.caching.redis_client import get_redis_client

__all__ = [
    "CacheEntry",
    "DiscoveryCache",
    "extract_role_family",
    "get_discovery_cache",
    "get_redis_client",
    "normalize_company_name",
]
