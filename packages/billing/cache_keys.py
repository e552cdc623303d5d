"""Cache key generators for billing package."""

from datetime import datetime

CACHE_VERSION = "v1"


def subscription_key(user_id: str) -> str:
    """Generate cache key for a user's current subscription."""
    return f"{CACHE_VERSION}:subscription:{user_id}"


def feature_access_key(user_id: str, plan: str) -> str:
    """Generate cache key for a feature access decision."""
    return f"{CACHE_VERSION}:feature-access:{user_id}:{plan}"


def feature_access_pattern(user_id: str) -> str:
    """Match feature access entries for a user under any cache version."""
    return f"*:feature-access:{user_id}:*"


def article_count_key(user_id: str) -> str:
    return f"{CACHE_VERSION}:article-count:{user_id}"


def summary_usage_key(user_id: str, now: datetime) -> str:
    """Monthly summary counter; month is 1-based and zero padded."""
    return f"{CACHE_VERSION}:summary-usage:{user_id}:{now.year:04d}-{now.month:02d}"


def note_count_key(user_id: str) -> str:
    return f"note-count:{user_id}"
