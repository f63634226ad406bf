# civic_hierarchy/dependencies/permissions.py
from fastapi import Depends, HTTPException, status

from civic_hierarchy.dependencies.auth import get_current_actor
from civic_hierarchy.models.actor import Actor


# Dependency to require any administrative level
def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators are allowed to perform this action.",
        )
    return actor

