from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generic, TypeVar

from ...auth.permissions import Action, Resource

E = TypeVar("E")


@dataclass(frozen=True)
class TransitionContext:
    """Inputs a transition may read. ``at`` is supplied so transitions stay pure."""

    actor_id: str
    at: datetime
    reason: str | None = None
    role_id: str | None = None


@dataclass(frozen=True)
class TransitionSpec(Generic[E]):
    """
    One lifecycle transition.

    ``required`` is an any-of list of grants. ``elevated`` transitions skip
    resource grants and require the super_admin role type instead.
    ``deletes`` marks irreversible removal: ``apply`` only validates.
    """

    name: str
    audit_action: str
    apply: Callable[[E, TransitionContext], E]
    describe: Callable[[E, TransitionContext], str]
    required: tuple[tuple[Resource, Action], ...] = ()
    elevated: bool = False
    deletes: bool = False
