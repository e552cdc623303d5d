"""Cache key generators for users package."""


def user_plan_key(user_id: str) -> str:
    """Generate cache key for a user's current plan."""
    return f"user:plan:{user_id}"
