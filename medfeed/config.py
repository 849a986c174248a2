"""Runtime configuration for MedFeed.

Values come from environment variables, optionally loaded from a ``.env``
file at the project root.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project folder explicitly (works even if CWD differs)
_BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=_BASE_DIR / ".env")


class Settings:
    # Stores
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "medfeed")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Feed queue
    FEED_PAGE_SIZE: int = int(os.getenv("FEED_PAGE_SIZE", "20"))
    FEED_QUEUE_TTL_SECONDS: int = int(os.getenv("FEED_QUEUE_TTL_SECONDS", "3600"))
    CANDIDATES_PER_SOURCE: int = int(os.getenv("CANDIDATES_PER_SOURCE", "50"))

    # Trending
    TRENDING_TOP_K: int = int(os.getenv("TRENDING_TOP_K", "15"))
    TRENDING_POOL_SIZE: int = int(os.getenv("TRENDING_POOL_SIZE", "100"))

    # Cache TTLs (seconds)
    TTL_ITEM_DETAILS: int = int(os.getenv("TTL_ITEM_DETAILS", "1800"))
    TTL_ITEM_EXISTS: int = int(os.getenv("TTL_ITEM_EXISTS", "3600"))
    TTL_FILTERED_ITEMS: int = int(os.getenv("TTL_FILTERED_ITEMS", "600"))
    TTL_DEALS: int = int(os.getenv("TTL_DEALS", "21600"))
    TTL_GLOBAL_CANDIDATES: int = int(os.getenv("TTL_GLOBAL_CANDIDATES", "3600"))
    TTL_USER_TRENDING: int = int(os.getenv("TTL_USER_TRENDING", "600"))
    TTL_RECENTLY_VIEWED: int = int(os.getenv("TTL_RECENTLY_VIEWED", "600"))
    TTL_WISHLIST: int = int(os.getenv("TTL_WISHLIST", "300"))
    TTL_SIMILAR: int = int(os.getenv("TTL_SIMILAR", "1800"))
    TTL_SUGGESTIONS: int = int(os.getenv("TTL_SUGGESTIONS", "120"))
    TTL_POPULAR_TERMS: int = int(os.getenv("TTL_POPULAR_TERMS", "86400"))
    TTL_RECENT_SEARCHES: int = int(os.getenv("TTL_RECENT_SEARCHES", str(30 * 24 * 60 * 60)))


settings = Settings()
