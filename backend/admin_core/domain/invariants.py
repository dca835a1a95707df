"""
Transition preconditions.

Every check runs BEFORE any side effect and raises an explicit error; a
rejected transition is never a silent no-op.
"""

import logging
from collections.abc import Collection
from enum import Enum
from typing import Any

from ..errors import InvalidTransitionError, ReasonRequiredError

logger = logging.getLogger("admin_core.invariants")


def _value(state: Any) -> Any:
    return state.value if isinstance(state, Enum) else state


def require_state(
    current: Any,
    allowed: Collection[Any],
    *,
    field: str,
    transition: str,
    entity_type: str,
    entity_id: str,
) -> None:
    """
    Reject ``transition`` unless ``current`` is one of ``allowed``.

    Raises:
        InvalidTransitionError: With the current and accepted states in details
    """
    if current in allowed:
        return

    allowed_values = sorted(str(_value(state)) for state in allowed)
    details = {
        "entityType": entity_type,
        "entityId": entity_id,
        "transition": transition,
        "field": field,
        "current": _value(current),
        "allowed": allowed_values,
    }
    logger.warning(
        "transition_rejected entity_type=%s entity_id=%s transition=%s %s=%s",
        entity_type,
        entity_id,
        transition,
        field,
        _value(current),
    )
    raise InvalidTransitionError(
        f"Cannot {transition} {entity_type} {entity_id}: "
        f"{field} is '{_value(current)}', expected one of {allowed_values}",
        details=details,
    )


def require_reason(
    reason: str | None,
    *,
    transition: str,
    entity_type: str,
    entity_id: str,
) -> str:
    """
    Return the stripped reason, rejecting missing or whitespace-only input.

    Raises:
        ReasonRequiredError: If the reason is empty after stripping
    """
    cleaned = (reason or "").strip()
    if cleaned:
        return cleaned

    logger.info(
        "reason_missing entity_type=%s entity_id=%s transition=%s",
        entity_type,
        entity_id,
        transition,
    )
    raise ReasonRequiredError(
        f"A reason is required to {transition} {entity_type} {entity_id}",
        details={
            "entityType": entity_type,
            "entityId": entity_id,
            "transition": transition,
        },
    )
