"""Test cases for the API surface that resolves before any database access."""

import logging

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from civic_hierarchy.dependencies.auth import get_current_actor
from civic_hierarchy.dependencies.hierarchy import get_hierarchy_store
from civic_hierarchy.main import app
from civic_hierarchy.models.user import AdminLevel

from conftest import build_store, make_actor

client = TestClient(app)


@pytest.fixture
def login_as():
    """Factory: login_as(level, node_id=None) overrides the caller and the hierarchy."""
    store = build_store()

    def factory(level, node_id=None, actor_id="actor"):
        actor = make_actor(store, level, node_id, actor_id)
        app.dependency_overrides[get_current_actor] = lambda: actor
        app.dependency_overrides[get_hierarchy_store] = lambda: store
        return actor

    yield factory
    app.dependency_overrides.clear()


def test_root():
    """Test GET / reports the service is running."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["message"].endswith("is running")


def test_me_requires_token():
    """Test GET /users/me without a bearer token returns 401."""
    response = client.get("/users/me")
    assert response.status_code == 401


def test_scope_of_region_admin(login_as):
    """Test GET /hierarchy/scope lists the bound region and its descendants."""
    login_as(AdminLevel.REGION, "khartoum")
    response = client.get("/hierarchy/scope")
    assert response.status_code == 200
    data = response.json()
    assert data["unconstrained"] is False
    assert data["kind"] == "geographic"
    assert data["node_ids"] == sorted(build_store().descendant_ids("khartoum"))


def test_scope_in_other_kind_is_empty(login_as):
    """Test GET /hierarchy/scope?kind=sector is empty for a geographic admin."""
    login_as(AdminLevel.REGION, "khartoum")
    response = client.get("/hierarchy/scope", params={"kind": "sector"})
    assert response.status_code == 200
    assert response.json() == {"unconstrained": False, "kind": "sector", "node_ids": []}


def test_scope_of_general_secretariat(login_as):
    """Test GET /hierarchy/scope is unconstrained for the general secretariat."""
    login_as(AdminLevel.GENERAL_SECRETARIAT)
    response = client.get("/hierarchy/scope")
    assert response.json()["unconstrained"] is True


def test_node_outside_jurisdiction_is_forbidden(login_as):
    """Test GET /hierarchy/{id} returns 403 for a node in another region."""
    login_as(AdminLevel.LOCALITY, "bahri")
    assert client.get("/hierarchy/sheikan").status_code == 403
    assert client.get("/hierarchy/missing").status_code == 404


def test_children_of_ancestor_are_forbidden(login_as):
    """Test GET /hierarchy/{id}/children requires the node to be in jurisdiction."""
    login_as(AdminLevel.LOCALITY, "bahri")
    assert client.get("/hierarchy/khartoum/children").status_code == 403


def test_children_out_of_jurisdiction_are_audited(login_as, caplog):
    """Test GET /hierarchy/{id}/children outside the caller's region is denied with a reason and an audit record."""
    login_as(AdminLevel.REGION, "khartoum", actor_id="region_admin")
    with caplog.at_level(logging.WARNING, logger="civic_hierarchy.audit"):
        response = client.get("/hierarchy/sheikan/children")
    assert response.status_code == 403
    assert response.json()["detail"]["reason"] == "OUT_OF_JURISDICTION"
    denials = [r.getMessage() for r in caplog.records if r.name == "civic_hierarchy.audit"]
    assert len(denials) == 1
    assert "reason=OUT_OF_JURISDICTION" in denials[0]
    assert "actor=region_admin" in denials[0]
    assert "node=sheikan" in denials[0]


def test_node_view_denial_is_audited(login_as, caplog):
    """Test GET /hierarchy/{id} and /ancestors outside jurisdiction and off the ancestor chain are audited."""
    login_as(AdminLevel.LOCALITY, "bahri")
    with caplog.at_level(logging.WARNING, logger="civic_hierarchy.audit"):
        node_response = client.get("/hierarchy/sheikan")
        ancestors_response = client.get("/hierarchy/sheikan/ancestors")
    assert node_response.status_code == 403
    assert node_response.json()["detail"]["reason"] == "OUT_OF_JURISDICTION"
    assert ancestors_response.status_code == 403
    denials = [r.getMessage() for r in caplog.records if r.name == "civic_hierarchy.audit"]
    assert len(denials) == 2
    assert all("node=sheikan" in message for message in denials)


def test_missing_node_reports_reason(login_as):
    """Test GET /hierarchy/{id}/children for an unknown node returns 404 with NODE_NOT_FOUND."""
    login_as(AdminLevel.REGION, "khartoum")
    response = client.get("/hierarchy/missing/children")
    assert response.status_code == 404
    assert response.json()["detail"]["reason"] == "NODE_NOT_FOUND"


def test_member_cannot_create_nodes(login_as):
    """Test POST /hierarchy/ returns 403 for members."""
    login_as(AdminLevel.USER, "jereif_east")
    response = client.post(
        "/hierarchy/",
        json={
            "name": "New district",
            "kind": "geographic",
            "level": "district",
            "parent_id": "khartoum_east",
        },
    )
    assert response.status_code == 403


def test_member_cannot_create_admins(login_as):
    """Test POST /users/admins returns 403 for members."""
    login_as(AdminLevel.USER, "jereif_east")
    response = client.post(
        "/users/admins",
        json={
            "name": "Omer",
            "mobile_number": "0912345678",
            "password": "secret",
            "admin_level": "district",
            "node_id": "jereif_east",
        },
    )
    assert response.status_code == 403


def test_member_cannot_read_stats(login_as):
    """Test GET /users/stats returns 403 for members."""
    login_as(AdminLevel.USER, "jereif_east")
    assert client.get("/users/stats").status_code == 403


def test_validate_admin_creation_denial(login_as):
    """Test POST /users/admins/validate reports the denial reason."""
    login_as(AdminLevel.REGION, "khartoum")
    response = client.post(
        "/users/admins/validate",
        json={"admin_level": "region", "node_id": "north_kordofan"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["allowed"] is False
    assert data["reason"] == "INSUFFICIENT_LEVEL"


def test_validate_admin_creation_out_of_jurisdiction(login_as):
    """Test POST /users/admins/validate rejects a node in another region."""
    login_as(AdminLevel.REGION, "khartoum")
    response = client.post(
        "/users/admins/validate",
        json={"admin_level": "locality", "node_id": "sheikan"},
    )
    assert response.json()["reason"] == "OUT_OF_JURISDICTION"


def test_validate_admin_creation_allowed(login_as):
    """Test POST /users/admins/validate allows a locality admin in the region."""
    login_as(AdminLevel.REGION, "khartoum")
    response = client.post(
        "/users/admins/validate",
        json={"admin_level": "locality", "node_id": "khartoum_locality"},
    )
    assert response.json() == {"allowed": True, "reason": None, "message": ""}


def test_admin_cannot_deactivate_self(login_as):
    """Test PUT /users/{id}/status refuses the caller's own account."""
    actor_id = str(ObjectId())
    login_as(AdminLevel.ADMIN, actor_id=actor_id)
    response = client.put(f"/users/{actor_id}/status", params={"is_active": False})
    assert response.status_code == 400


def test_member_cannot_publish_bulletins(login_as):
    """Test POST /content/bulletin returns 403 for members."""
    login_as(AdminLevel.USER, "jereif_east")
    response = client.post("/content/bulletin", json={"title": "Notice"})
    assert response.status_code == 403
    assert response.json()["detail"]["reason"] == "INSUFFICIENT_LEVEL"


def test_invalid_content_type(login_as):
    """Test GET /content/{invalid_type} returns 422."""
    login_as(AdminLevel.USER, "jereif_east")
    assert client.get("/content/INVALID").status_code == 422
