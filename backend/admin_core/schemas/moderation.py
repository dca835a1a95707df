from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..domain.projections import ModerationPriority

_CAMEL = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class ModerationQueueItemRead(BaseModel):
    id: str
    target_type: str
    target_id: str
    target_name: str
    reason: str
    description: str
    priority: ModerationPriority
    reported_at: datetime | None = None

    model_config = _CAMEL


class UserStatsRead(BaseModel):
    total: int
    active: int
    pending_verification: int
    suspended: int
    banned: int
    admins: int

    model_config = _CAMEL


class EventStatsRead(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    flagged: int

    model_config = _CAMEL


class PayoutStatsRead(BaseModel):
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    cancelled: int
    total_amount: float
    pending_amount: float

    model_config = _CAMEL


class DashboardStatsRead(BaseModel):
    users: UserStatsRead
    events: EventStatsRead
    payouts: PayoutStatsRead
    moderation_queue_size: int

    model_config = _CAMEL
