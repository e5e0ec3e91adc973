"""Shared libraries for the curriculum service.

This package contains reusable infrastructure:
- common: settings and logging configuration
- caching: Redis client and the discovery research cache
- persistence: curriculum storage
"""
