from civic_hierarchy.models.hierarchy import HierarchyKind, NodeLevel, NodeStatus
from civic_hierarchy.services.hierarchy_store import NodeRecord


def test_descendant_ids_include_the_node_and_all_levels_below(store):
    assert store.descendant_ids("khartoum") == {
        "khartoum",
        "khartoum_locality",
        "khartoum_east",
        "jereif_east",
        "jereif_west",
        "old_district",
        "bahri",
    }


def test_descendant_ids_of_unknown_node_is_empty(store):
    assert store.descendant_ids("missing") == set()


def test_ancestors_are_ordered_root_first(store):
    assert [node.id for node in store.ancestors("jereif_east")] == [
        "national",
        "khartoum",
        "khartoum_locality",
        "khartoum_east",
    ]
    assert store.ancestors("national") == []


def test_lineage_maps_levels_to_ancestor_ids(store):
    assert store.lineage("jereif_east") == {
        "district": "jereif_east",
        "admin_unit": "khartoum_east",
        "locality": "khartoum_locality",
        "region": "khartoum",
        "national": "national",
    }


def test_is_leaf_ignores_inactive_children(store):
    assert not store.is_leaf("khartoum_east")
    assert store.is_leaf("jereif_east")
    # sheikan's only child is inactive
    assert store.is_leaf("sheikan")


def test_children_filters_by_status(store):
    all_children = {node.id for node in store.children("khartoum_east")}
    active_children = {node.id for node in store.children("khartoum_east", active_only=True)}
    assert all_children == {"jereif_east", "jereif_west", "old_district"}
    assert active_children == {"jereif_east", "jereif_west"}


def test_is_descendant_is_inclusive(store):
    assert store.is_descendant("jereif_east", "khartoum")
    assert store.is_descendant("khartoum", "khartoum")
    assert not store.is_descendant("khartoum", "jereif_east")
    assert not store.is_descendant("sheikan", "khartoum")


def test_nodes_of_kind(store):
    assert {node.id for node in store.nodes_of_kind(HierarchyKind.EXPATRIATE)} == {
        "gulf",
        "europe",
    }


def test_add_replaces_node_and_reindexes_parent(store):
    moved = store.get("bahri").model_copy(update={"parent_id": "north_kordofan"})
    store.add(moved)
    assert "bahri" not in store.descendant_ids("khartoum")
    assert "bahri" in store.descendant_ids("north_kordofan")


def test_get_active_skips_inactive_nodes(store):
    assert store.get("old_district") is not None
    assert store.get_active("old_district") is None
    assert store.get_active(None) is None


def test_store_accepts_records_in_any_order():
    from civic_hierarchy.services.hierarchy_store import HierarchyStore

    child = NodeRecord(
        id="d", kind=HierarchyKind.GEOGRAPHIC, level=NodeLevel.DISTRICT, parent_id="u"
    )
    parent = NodeRecord(
        id="u",
        kind=HierarchyKind.GEOGRAPHIC,
        level=NodeLevel.ADMIN_UNIT,
        status=NodeStatus.ACTIVE,
    )
    arena = HierarchyStore([child, parent])
    assert arena.descendant_ids("u") == {"u", "d"}
    assert len(arena) == 2
