import pytest
from pydantic import ValidationError

from civic_hierarchy.models.hierarchy import HierarchyKind, NodeLevel
from civic_hierarchy.schemas.content import ContentCreate
from civic_hierarchy.schemas.hierarchy import (
    HierarchyNodeCreate,
    HierarchyNodeUpdate,
    normalize_code,
)
from civic_hierarchy.schemas.user import UserSignup, UserUpdate


def test_node_name_and_code_are_normalized():
    node = HierarchyNodeCreate(
        name="  Khartoum  ",
        code=" kh-01 ",
        description="   ",
        kind=HierarchyKind.GEOGRAPHIC,
        level=NodeLevel.REGION,
        parent_id="national",
    )
    assert node.name == "Khartoum"
    assert node.code == "KH-01"
    assert node.description is None


def test_blank_code_becomes_none():
    assert normalize_code("   ") is None
    assert normalize_code(None) is None


@pytest.mark.parametrize("code", ["KH 01", "KH.01", "خرطوم"])
def test_code_with_invalid_characters_is_rejected(code):
    with pytest.raises(ValueError):
        normalize_code(code)


def test_node_name_is_required():
    with pytest.raises(ValidationError):
        HierarchyNodeCreate(name="  ", kind=HierarchyKind.EXPATRIATE, level=NodeLevel.EXPATRIATE_REGION)


def test_update_leaves_omitted_fields_unset():
    update = HierarchyNodeUpdate(code="gulf")
    assert update.code == "GULF"
    assert update.model_dump(exclude_unset=True) == {"code": "GULF"}


def test_signup_normalizes_mobile_number():
    signup = UserSignup(
        name="Amna", mobile_number="0912345678", password="secret", node_id="jereif_east"
    )
    assert signup.mobile_number == "+249912345678"


def test_signup_rejects_bad_mobile_number():
    with pytest.raises(ValidationError):
        UserSignup(name="Amna", mobile_number="123", password="secret", node_id="jereif_east")


def test_user_update_allows_missing_mobile_number():
    assert UserUpdate(name="Amna").mobile_number is None


def test_content_title_is_required():
    with pytest.raises(ValidationError):
        ContentCreate(title="   ")
    assert ContentCreate(title=" Weekly bulletin ").title == "Weekly bulletin"
