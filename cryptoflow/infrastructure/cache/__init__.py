"""Caching Service Implementation.

Provides the durable, TTL-bound implementation of the CacheService interface.
Bounded Context: Cache Management
"""
