"""Content writes touch their target nodes so a concurrent deactivation conflicts."""

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from civic_hierarchy.models.content import ContentTarget, ContentType
from civic_hierarchy.models.hierarchy import HierarchyKind, NodeLevel
from civic_hierarchy.models.user import AdminLevel
from civic_hierarchy.schemas.content import ContentCreate, ContentUpdate
from civic_hierarchy.services.content_service import ContentService

from conftest import build_store, make_actor

SERVICE = "civic_hierarchy.services.content_service"


@asynccontextmanager
async def _no_transaction():
    yield None


def _fake_content(**fields):
    return SimpleNamespace(id="content-1", insert=AsyncMock(), set=AsyncMock(), **fields)


@pytest.fixture
def service():
    service = ContentService()
    service.hierarchy_service.load_store = AsyncMock(side_effect=lambda session=None: build_store())
    service.hierarchy_service.touch = AsyncMock()
    content_model = MagicMock(side_effect=_fake_content)
    with patch(f"{SERVICE}.transaction", _no_transaction), patch(f"{SERVICE}.Content", content_model):
        yield service


@pytest.mark.asyncio
async def test_create_touches_the_target_node(service):
    actor = make_actor(build_store(), AdminLevel.REGION, "khartoum")
    content = await service.create_content(
        ContentType.BULLETIN, ContentCreate(title="Notice", target_node_ids=["bahri"]), actor
    )
    assert [target.node_id for target in content.targets] == ["bahri"]
    content.insert.assert_awaited_once()
    service.hierarchy_service.touch.assert_awaited_once_with("bahri", None)


@pytest.mark.asyncio
async def test_member_report_touches_their_own_node(service):
    actor = make_actor(build_store(), AdminLevel.USER, "jereif_east")
    await service.create_content(ContentType.REPORT, ContentCreate(title="Water outage"), actor)
    service.hierarchy_service.touch.assert_awaited_once_with("jereif_east", None)


@pytest.mark.asyncio
async def test_global_content_touches_nothing(service):
    actor = make_actor(build_store(), AdminLevel.GENERAL_SECRETARIAT)
    content = await service.create_content(
        ContentType.BULLETIN, ContentCreate(title="Everyone"), actor
    )
    assert content.targets == []
    service.hierarchy_service.touch.assert_not_awaited()


@pytest.mark.asyncio
async def test_rejected_target_is_not_touched(service):
    actor = make_actor(build_store(), AdminLevel.REGION, "khartoum")
    with pytest.raises(HTTPException) as exc_info:
        await service.create_content(
            ContentType.BULLETIN, ContentCreate(title="Notice", target_node_ids=["sheikan"]), actor
        )
    assert exc_info.value.status_code == 403
    service.hierarchy_service.touch.assert_not_awaited()


@pytest.mark.asyncio
async def test_retargeting_touches_the_new_target(service):
    actor = make_actor(build_store(), AdminLevel.REGION, "khartoum")
    existing = _fake_content(
        content_type=ContentType.BULLETIN,
        targets=[
            ContentTarget(kind=HierarchyKind.GEOGRAPHIC, level=NodeLevel.LOCALITY, node_id="bahri")
        ],
    )
    service._get = AsyncMock(return_value=existing)
    await service.update_content(
        ContentType.BULLETIN, "content-1", ContentUpdate(target_node_ids=["jereif_east"]), actor
    )
    service.hierarchy_service.touch.assert_awaited_once_with("jereif_east", None)
    assert existing.set.await_args.args[0]["targets"][0]["node_id"] == "jereif_east"


@pytest.mark.asyncio
async def test_edit_without_retargeting_touches_nothing(service):
    actor = make_actor(build_store(), AdminLevel.REGION, "khartoum")
    existing = _fake_content(
        content_type=ContentType.BULLETIN,
        targets=[
            ContentTarget(kind=HierarchyKind.GEOGRAPHIC, level=NodeLevel.LOCALITY, node_id="bahri")
        ],
    )
    service._get = AsyncMock(return_value=existing)
    await service.update_content(
        ContentType.BULLETIN, "content-1", ContentUpdate(title="Corrected"), actor
    )
    service.hierarchy_service.touch.assert_not_awaited()
