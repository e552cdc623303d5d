"""
Domain models for usage quotas.
"""

from typing import Literal, Optional, Union
from pydantic import BaseModel

from packages.billing.models.domain.enums import PlanType, ResourceType

UNLIMITED = "unlimited"


class QuotaRule(BaseModel):
    """Per-plan limits for one resource; None means unlimited."""

    resource_type: ResourceType
    label: str
    limits: dict[PlanType, Optional[int]]

    def limit_for(self, plan: PlanType) -> Optional[int]:
        return self.limits.get(plan)


class Quota(BaseModel):
    """Usage snapshot returned to callers."""

    used: int
    limit: Union[int, Literal["unlimited"]]
    remaining: Union[int, Literal["unlimited"]]
