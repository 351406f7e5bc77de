"""
Development claims.

An activity is either unclaimed or "in development" by exactly one user.
Only the holder can give the claim back; nobody can take it over.

    Unclaimed    --toggle(u)-->  ClaimedBy(u)
    ClaimedBy(u) --toggle(u)-->  Unclaimed
    ClaimedBy(u) --toggle(v)-->  ClaimedBy(u)   + ClaimConflictError

All functions return a new Activity and leave their argument untouched.
"""
from .errors import ClaimConflictError, ValidationError
from .schema import Activity


def _check_holder(activity: Activity, user_id: str) -> None:
    if not user_id:
        raise ValidationError("user id is required to change a claim")
    holder = activity.development_by
    if holder is not None and holder != user_id:
        raise ClaimConflictError(
            f"Activity {activity.id} is already being developed by user {holder}",
            holder=holder,
        )


def claim(activity: Activity, user_id: str) -> Activity:
    _check_holder(activity, user_id)
    updated = activity.copy()
    updated.development_by = user_id
    return updated


def release(activity: Activity, user_id: str) -> Activity:
    _check_holder(activity, user_id)
    updated = activity.copy()
    updated.development_by = None
    return updated


def toggle(activity: Activity, user_id: str) -> Activity:
    """Claim if unclaimed, release if held by ``user_id``."""
    if activity.development_by == user_id:
        return release(activity, user_id)
    return claim(activity, user_id)
