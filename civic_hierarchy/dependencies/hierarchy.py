# civic_hierarchy/dependencies/hierarchy.py
from civic_hierarchy.services.hierarchy_service import HierarchyService
from civic_hierarchy.services.hierarchy_store import HierarchyStore

hierarchy_service = HierarchyService()


async def get_hierarchy_store() -> HierarchyStore:
    """Fresh snapshot of the hierarchy for the current request."""
    return await hierarchy_service.load_store()
