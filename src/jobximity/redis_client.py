"""
Redis connection settings for the location store and event stream.
"""
import os
from typing import Optional

import redis
from dotenv import load_dotenv

load_dotenv()

# REDIS_URL wins over host/port/db when set (e.g. rediss:// for a managed instance)
REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))


def get_redis_client() -> redis.Redis:
    """Client with decoded responses; stored hashes and set members come back as str."""
    if REDIS_URL:
        return redis.Redis.from_url(REDIS_URL, decode_responses=True)
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        db=REDIS_DB,
        decode_responses=True,
    )
