"""Target key parsing and canonical form."""

import pytest

from episodic.errors.exceptions import InvalidTargetError
from episodic.models.enums import TargetType
from episodic.models.target import TargetKey, in_family


def test_parse_simple_key():
    key = TargetKey.parse("review:r1")
    assert key.target_type is TargetType.REVIEW
    assert key.target_id == "r1"
    assert key.parent_key is None
    assert str(key) == "review:r1"


def test_parse_season_key():
    key = TargetKey.parse("review:r1:2")
    assert key.parent_key == "2"
    assert str(key) == "review:r1:2"


def test_parent_may_contain_colons():
    key = TargetKey.parse("comment:c9:review:r1")
    assert key.target_type is TargetType.COMMENT
    assert key.target_id == "c9"
    assert key.parent_key == "review:r1"
    assert str(key) == "comment:c9:review:r1"


def test_keys_are_values():
    assert TargetKey.parse("list:l1") == TargetKey(TargetType.LIST, "l1")
    assert len({TargetKey.parse("list:l1"), TargetKey.parse("list:l1")}) == 1


@pytest.mark.parametrize(
    "raw",
    ["", "review", "movie:m1", "review:", "review:bad id", "review:r1:bad parent!"],
)
def test_malformed_keys_rejected(raw):
    with pytest.raises(InvalidTargetError) as exc_info:
        TargetKey.parse(raw)
    assert exc_info.value.status_code == 422
    assert exc_info.value.code == "INVALID_TARGET"


@pytest.mark.parametrize(
    "candidate, expected",
    [
        ("review:r1", True),
        ("review:r1:2", True),
        ("comment:c9:review:r1", True),
        ("comment:c2:review:r1:2", True),
        ("comment:review:r1", False),
        ("review:r12", False),
        ("comment:c9:review:r12", False),
        ("list:review", False),
    ],
)
def test_family_membership(candidate, expected):
    assert in_family(candidate, "review:r1") is expected
