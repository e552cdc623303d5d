"""
Service for quota enforcement and checking.

This is the critical service that prevents usage beyond plan limits. Counts
are cached briefly; a cache miss always recounts from the database, so a
counter can be stale for at most its TTL.
"""

from datetime import datetime, timezone
from typing import Optional

from common.core.exceptions import NotFoundError, QuotaExceededError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.caching.factory import get_cache_provider
from common.providers.caching.interface import CacheInterface
from packages.billing.cache_keys import (
    article_count_key,
    note_count_key,
    summary_usage_key,
)
from packages.billing.models.domain.enums import PlanType, ResourceType
from packages.billing.models.domain.quota import UNLIMITED, Quota, QuotaRule
from packages.content.repositories.usage_count_repository import UsageCountRepository
from packages.users.repositories.user_repository import UserRepository

logger = get_logger(__name__)

COUNT_CACHE_TTL = 3600

QUOTA_RULES: dict[ResourceType, QuotaRule] = {
    ResourceType.SUMMARY: QuotaRule(
        resource_type=ResourceType.SUMMARY,
        label="summaries/month",
        limits={PlanType.FREE: 5, PlanType.STARTER: 20, PlanType.PRO: None},
    ),
    ResourceType.ARTICLE: QuotaRule(
        resource_type=ResourceType.ARTICLE,
        label="saved articles",
        limits={PlanType.FREE: 10, PlanType.STARTER: 50, PlanType.PRO: None},
    ),
    ResourceType.NOTE: QuotaRule(
        resource_type=ResourceType.NOTE,
        label="notes",
        limits={PlanType.FREE: 20, PlanType.STARTER: 100, PlanType.PRO: None},
    ),
}


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def seconds_until_month_end(now: datetime) -> int:
    start = month_start(now)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return max(1, int((next_month - now).total_seconds()))


class QuotaService:
    """Service for quota enforcement."""

    def __init__(
        self,
        cache: Optional[CacheInterface] = None,
        user_repo: Optional[UserRepository] = None,
        usage_repo: Optional[UsageCountRepository] = None,
    ):
        self.cache = cache or get_cache_provider()
        self.user_repo = user_repo or UserRepository()
        self.usage_repo = usage_repo or UsageCountRepository()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _counter(
        self, user_id: str, resource_type: ResourceType, now: datetime
    ) -> tuple[str, int]:
        """Cache key and TTL of the usage counter for the current period."""
        if resource_type == ResourceType.SUMMARY:
            return summary_usage_key(user_id, now), seconds_until_month_end(now)
        if resource_type == ResourceType.ARTICLE:
            return article_count_key(user_id), COUNT_CACHE_TTL
        return note_count_key(user_id), COUNT_CACHE_TTL

    async def _count_from_source(
        self, user_id: str, resource_type: ResourceType, now: datetime
    ) -> int:
        if resource_type == ResourceType.SUMMARY:
            return await self.usage_repo.count_summaries_since(user_id, month_start(now))
        if resource_type == ResourceType.ARTICLE:
            return await self.usage_repo.count_saved_articles(user_id)
        return await self.usage_repo.count_notes(user_id)

    async def _get_usage(self, user_id: str, resource_type: ResourceType) -> int:
        now = self._now()
        key, ttl = self._counter(user_id, resource_type, now)

        cached = await self.cache.get(key)
        if cached is not None:
            return int(cached)

        used = await self._count_from_source(user_id, resource_type, now)
        await self.cache.set(key, used, ttl=ttl)
        return used

    async def _get_plan(self, user_id: str) -> PlanType:
        user = await self.user_repo.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user.plan_type

    @trace_span
    async def check_limit(self, user_id: str, resource_type: ResourceType) -> None:
        """
        Ensure the user may create one more resource of this type.

        Raises:
            NotFoundError: If the user does not exist
            QuotaExceededError: If usage has reached the plan limit
        """
        plan = await self._get_plan(user_id)
        rule = QUOTA_RULES[resource_type]
        limit = rule.limit_for(plan)
        if limit is None:
            return

        used = await self._get_usage(user_id, resource_type)
        if used >= limit:
            logger.warning(
                f"Quota exceeded for user {user_id}: {resource_type.value}",
                extra={
                    "user_id": user_id,
                    "resource_type": resource_type.value,
                    "plan_type": plan.value,
                    "used": used,
                    "limit": limit,
                },
            )
            raise QuotaExceededError(
                plan=plan.value,
                limit=limit,
                resource_type=resource_type.value,
                resource_label=rule.label,
            )

    @trace_span
    async def get_quota(self, user_id: str, resource_type: ResourceType) -> Quota:
        """Get current usage, limit and remaining allowance."""
        plan = await self._get_plan(user_id)
        used = await self._get_usage(user_id, resource_type)
        limit = QUOTA_RULES[resource_type].limit_for(plan)

        if limit is None:
            return Quota(used=used, limit=UNLIMITED, remaining=UNLIMITED)

        return Quota(used=used, limit=limit, remaining=max(0, limit - used))

    async def invalidate_cache(self, user_id: str, resource_type: ResourceType) -> None:
        """Drop the cached counter after a resource is created or deleted."""
        key, _ = self._counter(user_id, resource_type, self._now())
        await self.cache.delete(key)
