"""
Configuration package for the churn analytics engine.

Contains environment settings and the lazily created database,
Redis and Elasticsearch clients.
"""

from churn_analytics.config.settings import settings, get_settings

__all__ = ['settings', 'get_settings']
