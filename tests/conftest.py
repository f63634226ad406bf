"""Shared fixtures: an in-memory hierarchy seeded with Khartoum / North Kordofan data."""

import pytest

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    NodeLevel,
    NodeStatus,
    SectorType,
)
from civic_hierarchy.models.user import AdminLevel
from civic_hierarchy.services.admin_creation import build_binding, derive_role
from civic_hierarchy.services.hierarchy_store import HierarchyStore, NodeRecord

GEO = HierarchyKind.GEOGRAPHIC
EXP = HierarchyKind.EXPATRIATE
SEC = HierarchyKind.SECTOR


def _node(node_id, name, kind, level, parent_id=None, **extra):
    return NodeRecord(
        id=node_id, name=name, kind=kind, level=level, parent_id=parent_id, **extra
    )


def build_store():
    return HierarchyStore(
        [
            _node("national", "السودان", GEO, NodeLevel.NATIONAL),
            _node("khartoum", "الخرطوم", GEO, NodeLevel.REGION, "national"),
            _node("khartoum_locality", "محلية الخرطوم", GEO, NodeLevel.LOCALITY, "khartoum"),
            _node("khartoum_east", "الخرطوم شرق", GEO, NodeLevel.ADMIN_UNIT, "khartoum_locality"),
            _node("jereif_east", "الجريف شرق", GEO, NodeLevel.DISTRICT, "khartoum_east"),
            _node("jereif_west", "الجريف غرب", GEO, NodeLevel.DISTRICT, "khartoum_east"),
            _node(
                "old_district",
                "حي قديم",
                GEO,
                NodeLevel.DISTRICT,
                "khartoum_east",
                status=NodeStatus.INACTIVE,
            ),
            _node("bahri", "محلية بحري", GEO, NodeLevel.LOCALITY, "khartoum"),
            _node("north_kordofan", "شمال كردفان", GEO, NodeLevel.REGION, "national"),
            _node("sheikan", "محلية شيكان", GEO, NodeLevel.LOCALITY, "north_kordofan"),
            _node(
                "el_obeid_unit",
                "الأبيض",
                GEO,
                NodeLevel.ADMIN_UNIT,
                "sheikan",
                status=NodeStatus.INACTIVE,
            ),
            _node("gulf", "الخليج", EXP, NodeLevel.EXPATRIATE_REGION),
            _node("europe", "أوروبا", EXP, NodeLevel.EXPATRIATE_REGION),
            _node(
                "social_khartoum",
                "الخرطوم - الاجتماعي",
                SEC,
                NodeLevel.REGION,
                sector_type=SectorType.SOCIAL,
                anchor_id="khartoum",
            ),
            _node(
                "social_khartoum_locality",
                "محلية الخرطوم - الاجتماعي",
                SEC,
                NodeLevel.LOCALITY,
                "social_khartoum",
                sector_type=SectorType.SOCIAL,
                anchor_id="khartoum_locality",
            ),
            _node(
                "economic_khartoum",
                "الخرطوم - الاقتصادي",
                SEC,
                NodeLevel.REGION,
                sector_type=SectorType.ECONOMIC,
                anchor_id="khartoum",
            ),
        ]
    )


def make_actor(store, level, node_id=None, actor_id="actor"):
    level = AdminLevel(level)
    bindings = []
    active = HierarchyKind.GEOGRAPHIC
    if node_id is not None:
        binding = build_binding(store.get(node_id), store)
        bindings.append(binding)
        active = binding.kind
    elif level == AdminLevel.EXPATRIATE_GENERAL:
        active = HierarchyKind.EXPATRIATE
    return Actor(
        id=actor_id,
        role=derive_role(level),
        admin_level=level,
        active_hierarchy=active,
        bindings=bindings,
    )


@pytest.fixture
def store():
    return build_store()


@pytest.fixture
def actor_at(store):
    """Factory: actor_at(level, node_id=None) -> Actor bound at `node_id`."""

    def factory(level, node_id=None, actor_id="actor"):
        return make_actor(store, level, node_id, actor_id)

    return factory


@pytest.fixture
def viewer_at(actor_at):
    """Factory: a USER-level member bound at `node_id`."""

    def factory(node_id=None):
        return actor_at(AdminLevel.USER, node_id, actor_id=f"member-{node_id}")

    return factory
