from civic_hierarchy.services.db import all_of


def test_all_of_drops_empty_filters():
    assert all_of({}, {"admin_level": "user"}) == {"admin_level": "user"}
    assert all_of({}, {}) == {}


def test_all_of_joins_several_filters():
    assert all_of({"content_type": "bulletin"}, {"published": True}) == {
        "$and": [{"content_type": "bulletin"}, {"published": True}]
    }
