# backend/app/redis_client.py

from redis import Redis

from .config import settings

# Lazily connects on first command; the engine itself never needs Redis
redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
