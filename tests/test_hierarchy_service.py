"""Service tests with the Beanie calls patched out; the hierarchy comes from the fixture store."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from civic_hierarchy.models.hierarchy import NodeStatus
from civic_hierarchy.models.user import AdminLevel
from civic_hierarchy.services.admin_creation import build_binding
from civic_hierarchy.services.hierarchy_service import HierarchyService, is_stale

from conftest import build_store, make_actor

SERVICE = "civic_hierarchy.services.hierarchy_service"


@asynccontextmanager
async def _no_transaction():
    yield None


@pytest.fixture
def service():
    service = HierarchyService()
    service.load_store = AsyncMock(side_effect=lambda session=None: build_store())
    with patch(f"{SERVICE}.transaction", _no_transaction):
        yield service


def _user_model(bound_users=0, users=()):
    user_model = MagicMock()
    user_model.find.return_value.count = AsyncMock(return_value=bound_users)
    user_model.find.return_value.to_list = AsyncMock(return_value=list(users))
    return user_model


class TestIsStale:
    def test_same_timestamp_is_fresh(self):
        now = datetime(2024, 5, 1, 12, 0, 0)
        assert not is_stale(now, now, timedelta(seconds=1))

    def test_drift_within_tolerance_is_fresh(self):
        now = datetime(2024, 5, 1, 12, 0, 0)
        assert not is_stale(now, now - timedelta(milliseconds=800), timedelta(seconds=1))

    def test_drift_beyond_tolerance_is_stale(self):
        now = datetime(2024, 5, 1, 12, 0, 0)
        assert is_stale(now, now - timedelta(seconds=5), timedelta(seconds=1))
        assert is_stale(now - timedelta(seconds=5), now, timedelta(seconds=1))

    def test_aware_and_naive_timestamps_compare_in_utc(self):
        stored = datetime(2024, 5, 1, 12, 0, 0)
        seen = datetime(2024, 5, 1, 15, 0, 0, tzinfo=timezone(timedelta(hours=3)))
        assert not is_stale(stored, seen, timedelta(seconds=1))


def test_check_lock_rejects_stale_updates():
    service = HierarchyService()
    node = MagicMock(updated_at=datetime(2024, 5, 1, 12, 0, 0))
    service._check_lock(node, None)
    service._check_lock(node, datetime(2024, 5, 1, 12, 0, 0))
    with pytest.raises(HTTPException) as exc_info:
        service._check_lock(node, datetime(2024, 5, 1, 11, 0, 0))
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_count_bound_users_queries_bindings_by_node():
    service = HierarchyService()
    user_model = _user_model(bound_users=3)
    with patch(f"{SERVICE}.User", user_model):
        assert await service.count_bound_users("jereif_east") == 3
    user_model.find.assert_called_once_with({"bindings.node_id": "jereif_east"}, session=None)


@pytest.mark.asyncio
async def test_deactivate_refused_while_users_are_bound(service):
    store = build_store()
    actor = make_actor(store, AdminLevel.REGION, "khartoum")
    service.get_node = AsyncMock()
    with patch(f"{SERVICE}.User", _user_model(bound_users=1)):
        with pytest.raises(HTTPException) as exc_info:
            await service.deactivate_node("jereif_east", actor)
    assert exc_info.value.status_code == 409
    assert exc_info.value.detail["reason"] == "HAS_BOUND_USERS"
    service.get_node.assert_not_awaited()


@pytest.mark.asyncio
async def test_deactivate_refused_while_children_are_active(service):
    store = build_store()
    actor = make_actor(store, AdminLevel.REGION, "khartoum")
    with patch(f"{SERVICE}.User", _user_model(bound_users=0)):
        with pytest.raises(HTTPException) as exc_info:
            await service.deactivate_node("khartoum_east", actor)
    assert exc_info.value.detail["reason"] == "HAS_ACTIVE_CHILDREN"


@pytest.mark.asyncio
async def test_deactivate_bumps_structure_version(service):
    store = build_store()
    actor = make_actor(store, AdminLevel.REGION, "khartoum")
    node = MagicMock(structure_version=4)
    node.set = AsyncMock()
    service.get_node = AsyncMock(return_value=node)
    with patch(f"{SERVICE}.User", _user_model(bound_users=0)):
        assert await service.deactivate_node("jereif_east", actor) is node
    update = node.set.await_args.args[0]
    assert update["status"] == NodeStatus.INACTIVE
    assert update["structure_version"] == 5


@pytest.mark.asyncio
async def test_refresh_lineages_rewrites_only_affected_users():
    service = HierarchyService()
    store = build_store()
    user = MagicMock()
    user.bindings = [build_binding(store.get("khartoum_east"), store)]
    user.set = AsyncMock()
    store.add(store.get("khartoum_locality").model_copy(update={"parent_id": "north_kordofan"}))
    moved = store.descendant_ids("khartoum_locality")

    user_model = _user_model(users=[user])
    with patch(f"{SERVICE}.User", user_model):
        await service._refresh_lineages(store, moved, session=None)

    query = user_model.find.call_args.args[0]
    assert set(query["bindings.node_id"]["$in"]) == moved
    written = user.set.await_args.args[0]["bindings"]
    assert written[0]["lineage"]["region"] == "north_kordofan"
