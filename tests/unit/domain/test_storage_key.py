from __future__ import annotations

from uuid import uuid4

import pytest

from src.domain.value_objects.storage_key import (
    classify_storage_key,
    derive_storage_key,
    sanitize_filename,
)
from src.domain.value_objects.upload_category import UploadCategory, Visibility
from src.domain.value_objects.upload_owner import UploadOwner


def test_sanitize_filename_strips_traversal_and_unsafe_chars():
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("C:\\Users\\me\\My Clip (final).mp4") == "My_Clip__final_.mp4"
    assert sanitize_filename("..hidden") == "hidden"


def test_sanitize_filename_never_empty():
    assert sanitize_filename("") == "file"
    assert sanitize_filename("../") == "file"


def test_sanitize_filename_truncates_keeping_extension():
    name = "a" * 500 + ".mov"
    result = sanitize_filename(name)
    assert len(result) == 200
    assert result.endswith(".mov")


def test_derive_key_is_unique_per_call():
    owner = UploadOwner(user_id=uuid4())
    first = derive_storage_key("avatar", "me.png", owner)
    second = derive_storage_key("avatar", "me.png", owner)
    assert first != second


def test_derive_key_is_deterministic_with_disambiguator():
    owner = UploadOwner(user_id=uuid4())
    assert derive_storage_key("avatar", "me.png", owner, disambiguator="x") == (
        f"profiles/{owner.user_id}/avatar/x_me.png"
    )


def test_deliverable_key_uses_client_and_project_when_known():
    owner = UploadOwner(user_id=uuid4(), project_id=uuid4(), client_id=uuid4())
    key = derive_storage_key(
        UploadCategory.DELIVERABLE, "cut.mp4", owner, disambiguator="1-ab"
    )
    assert key == f"clients/{owner.client_id}/{owner.project_id}/deliverables/1-ab_cut.mp4"


def test_raw_key_without_client_falls_back_to_project_prefix():
    owner = UploadOwner(user_id=uuid4())
    key = derive_storage_key("raw", "a.mov", owner, disambiguator="d")
    assert key == "raw/general/d_a.mov"


def test_unknown_category_uses_generic_prefix():
    owner = UploadOwner(user_id=uuid4())
    assert derive_storage_key("mystery", "x.bin", owner, disambiguator="d") == "uploads/d_x.bin"


@pytest.mark.parametrize(
    "category,expected_category,expected_visibility",
    [
        ("portfolio", UploadCategory.PORTFOLIO, Visibility.PUBLIC),
        ("public-asset", UploadCategory.PUBLIC_ASSET, Visibility.PUBLIC),
        ("avatar", UploadCategory.AVATAR, Visibility.PUBLIC),
        ("deliverable", UploadCategory.DELIVERABLE, Visibility.RESTRICTED),
        ("raw", UploadCategory.RAW, Visibility.RESTRICTED),
        ("team-wip", UploadCategory.TEAM_WIP, Visibility.RESTRICTED),
    ],
)
def test_classifier_recovers_category_of_derived_keys(
    category, expected_category, expected_visibility
):
    for owner in (
        UploadOwner(user_id=uuid4()),
        UploadOwner(user_id=uuid4(), project_id=uuid4(), client_id=uuid4()),
    ):
        classification = classify_storage_key(derive_storage_key(category, "f.jpg", owner))
        assert classification.category is expected_category
        assert classification.visibility is expected_visibility


def test_classifier_treats_unknown_prefix_as_restricted_other():
    classification = classify_storage_key("somewhere/else/file.bin")
    assert classification.category is UploadCategory.OTHER
    assert not classification.is_public
