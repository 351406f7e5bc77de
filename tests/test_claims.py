"""
Tests for development claims.
"""
import pytest

from pkg.taskboard import claims
from pkg.taskboard.errors import ClaimConflictError, ValidationError
from pkg.taskboard.schema import Activity


def make_activity(holder=None):
    return Activity(id="a1", project_id="p1", title="Login screen", column="todo",
                    development_by=holder, version=3)


def test_toggle_claims_unclaimed_activity():
    activity = claims.toggle(make_activity(), "1")
    assert activity.development_by == "1"
    assert activity.in_development


def test_toggle_twice_releases():
    """Unclaimed → ClaimedBy(u) → Unclaimed"""
    activity = claims.toggle(claims.toggle(make_activity(), "1"), "1")
    assert activity.development_by is None


def test_toggle_by_other_user_conflicts():
    """No takeover: the holder keeps the claim"""
    held = make_activity(holder="1")
    with pytest.raises(ClaimConflictError) as exc:
        claims.toggle(held, "2")
    assert exc.value.holder == "1"
    assert exc.value.status == 403
    assert held.development_by == "1"


def test_toggle_only_touches_claim():
    original = make_activity()
    claimed = claims.toggle(original, "1")
    assert original.development_by is None
    assert (claimed.title, claimed.column, claimed.version) == ("Login screen", "todo", 3)


def test_claim_is_idempotent_for_holder():
    activity = claims.claim(make_activity(holder="1"), "1")
    assert activity.development_by == "1"


def test_release_unclaimed_is_noop():
    assert claims.release(make_activity(), "1").development_by is None


def test_release_by_other_user_conflicts():
    with pytest.raises(ClaimConflictError):
        claims.release(make_activity(holder="1"), "2")


def test_claim_requires_user():
    with pytest.raises(ValidationError):
        claims.toggle(make_activity(), "")
