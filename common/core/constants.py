from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class CacheProviderType(str, Enum):
    """Cache backends selectable through settings."""

    REDIS = "redis"
    MEMORY = "memory"
    NONE = "none"
