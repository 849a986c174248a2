"""HTTP layer of MedFeed.

FastAPI application, routers, the response envelope, exception types and
request logging for the personalization service.
"""
