"""MedFeed: personalization and feed backend for an e-pharmacy storefront.

This package provides the personalization layer behind the storefront:
bounded per-user engagement histories, candidate aggregation and scoring
for the discovery surfaces, a cache-backed feed queue, and the read-through
cache that keeps all of it cheap to serve.

Modules:
    api: FastAPI application and REST API endpoints
    personalization: engagement history, candidates, scoring and feed logic
"""

__version__ = "0.1.0"
