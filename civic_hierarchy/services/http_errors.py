# civic_hierarchy/services/http_errors.py
from fastapi import HTTPException, status

from civic_hierarchy.services.decisions import Decision, DenialReason

STATUS_BY_REASON = {
    DenialReason.INSUFFICIENT_LEVEL: status.HTTP_403_FORBIDDEN,
    DenialReason.OUT_OF_JURISDICTION: status.HTTP_403_FORBIDDEN,
    DenialReason.HIERARCHY_KIND_MISMATCH: status.HTTP_403_FORBIDDEN,
    DenialReason.NODE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DenialReason.HAS_ACTIVE_CHILDREN: status.HTTP_409_CONFLICT,
    DenialReason.HAS_BOUND_USERS: status.HTTP_409_CONFLICT,
}


def http_status_for(reason: DenialReason) -> int:
    return STATUS_BY_REASON.get(reason, status.HTTP_400_BAD_REQUEST)


def raise_for_decision(decision: Decision) -> Decision:
    """Translates a denial into an HTTPException; allowed decisions pass through."""
    if not decision.allowed:
        raise HTTPException(
            status_code=http_status_for(decision.reason),
            detail={"reason": decision.reason.value, "message": decision.message},
        )
    return decision
