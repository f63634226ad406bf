# civic_hierarchy/services/decisions.py
"""
Typed outcomes for jurisdiction, visibility, admin-creation and hierarchy
mutation checks.

Expected denials are values, not exceptions: callers inspect `allowed` and
translate `reason` into an HTTP response. Every denial is written to the
audit logger with the actor, the node involved and the reason code.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

audit_logger = logging.getLogger("civic_hierarchy.audit")


class DenialReason(str, Enum):
    INSUFFICIENT_LEVEL = "INSUFFICIENT_LEVEL"
    OUT_OF_JURISDICTION = "OUT_OF_JURISDICTION"
    HIERARCHY_KIND_MISMATCH = "HIERARCHY_KIND_MISMATCH"
    MUST_BIND_DEEPEST_LEVEL = "MUST_BIND_DEEPEST_LEVEL"
    HAS_ACTIVE_CHILDREN = "HAS_ACTIVE_CHILDREN"
    HAS_BOUND_USERS = "HAS_BOUND_USERS"
    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    AMBIGUOUS_TARGET = "AMBIGUOUS_TARGET"
    LEVEL_NODE_MISMATCH = "LEVEL_NODE_MISMATCH"
    INVALID_PARENT = "INVALID_PARENT"
    SECTOR_TYPE_MISMATCH = "SECTOR_TYPE_MISMATCH"
    CYCLE_DETECTED = "CYCLE_DETECTED"


@dataclass(frozen=True)
class Decision:
    """Result of a check. `payload` carries whatever an Allow produces."""

    allowed: bool
    reason: Optional[DenialReason] = None
    message: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.allowed


def allow(**payload) -> Decision:
    return Decision(allowed=True, payload=payload)


def deny(
    reason: DenialReason,
    message: str,
    actor_id: Optional[str] = None,
    node_id: Optional[str] = None,
) -> Decision:
    audit_logger.warning(
        "Denied: reason=%s actor=%s node=%s - %s",
        reason.value,
        actor_id or "anonymous",
        node_id,
        message,
    )
    return Decision(allowed=False, reason=reason, message=message)
