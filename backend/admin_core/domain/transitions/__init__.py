from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ...auth.permissions import Resource
from ..entities import EntityKind
from .base import TransitionContext, TransitionSpec
from .events import EVENT_TRANSITIONS
from .payouts import PAYOUT_TRANSITIONS
from .users import USER_TRANSITIONS


@dataclass(frozen=True)
class LifecycleTable:
    kind: EntityKind
    transitions: Mapping[str, TransitionSpec[Any]]


# Permission resource -> moderated entity. Payouts are governed by "finance".
LIFECYCLES: dict[Resource, LifecycleTable] = {
    Resource.USERS: LifecycleTable(EntityKind.USER, USER_TRANSITIONS),
    Resource.EVENTS: LifecycleTable(EntityKind.EVENT, EVENT_TRANSITIONS),
    Resource.FINANCE: LifecycleTable(EntityKind.PAYOUT, PAYOUT_TRANSITIONS),
}

__all__ = [
    "EVENT_TRANSITIONS",
    "LIFECYCLES",
    "LifecycleTable",
    "PAYOUT_TRANSITIONS",
    "TransitionContext",
    "TransitionSpec",
    "USER_TRANSITIONS",
]
