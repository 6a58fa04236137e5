"""
Rate limiting using slowapi
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from mediquiz import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000/hour", "100/minute"]
)


def ai_generation_limit():
    """Rate limit for endpoints that call the AI service"""
    return limiter.limit(settings.AI_RATE_LIMIT)
