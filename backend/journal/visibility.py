"""
Visibility Propagator
=====================

Keeps Sit.private equal to (owner privacy_setting == 'private').

TRANSITIONS:
------------
- into 'private'       -> every sit of the owner gets private=True
- out of 'private'     -> every sit of the owner gets private=False
- non-private <-> non-private -> sits untouched (the resolver decides)

ATOMICITY:
----------
change_privacy_setting() locks the owner's Profile row
(SELECT ... FOR UPDATE), writes the new setting and runs the sweep in one
transaction. services.create_sit() takes the same lock before choosing a
new sit's marker, so a sit created while a sweep is in flight is ordered
either before it (and swept) or after it (and marked from the final
setting).

REPAIR:
-------
A stale marker is an InconsistentStateError. repair_private_markers()
re-derives every marker from the current setting.
"""

import logging

from django.contrib.auth.models import User
from django.db import transaction

from .exceptions import InconsistentStateError, NotFoundError, ValidationError
from .models import PrivacySetting, Profile, Sit

logger = logging.getLogger(__name__)


def on_privacy_setting_changed(user: User, old_setting: str, new_setting: str) -> int:
    """
    Bulk sweep of the owner's sits for a setting change.

    Must run inside the transaction that writes the new setting.
    Returns the number of rows updated.
    """
    if new_setting == PrivacySetting.PRIVATE:
        return Sit.objects.filter(user_id=user.id).update(private=True)

    if old_setting == PrivacySetting.PRIVATE:
        return Sit.objects.filter(user_id=user.id).update(private=False)

    return 0


def change_privacy_setting(user: User, new_setting: str) -> str:
    """
    Set the user's privacy_setting and propagate it to existing sits.

    Returns the previous setting.
    """
    if new_setting not in PrivacySetting.values:
        raise ValidationError(f"Invalid privacy setting: {new_setting!r}")

    with transaction.atomic():
        try:
            profile = Profile.objects.select_for_update().get(user_id=user.id)
        except Profile.DoesNotExist:
            raise NotFoundError(f"User {user.id} has no profile")

        old_setting = profile.privacy_setting
        profile.privacy_setting = new_setting
        profile.save(update_fields=['privacy_setting'])
        swept = on_privacy_setting_changed(user, old_setting, new_setting)

    user.profile = profile
    logger.info(
        "User %s privacy %s -> %s (%d sit marker(s) updated)",
        user.id, old_setting, new_setting, swept
    )
    return old_setting


def check_private_marker(sit: Sit, privacy_setting: str) -> None:
    expected = privacy_setting == PrivacySetting.PRIVATE
    if sit.private != expected:
        raise InconsistentStateError(sit.user_id, [sit.id])


def find_inconsistent_sits(user: User) -> list[int]:
    profile = Profile.objects.get(user_id=user.id)
    return list(
        Sit.objects
        .filter(user_id=user.id)
        .exclude(private=profile.is_private)
        .order_by('id')
        .values_list('id', flat=True)
    )


def verify_private_markers(user: User) -> None:
    stale = find_inconsistent_sits(user)
    if stale:
        raise InconsistentStateError(user.id, stale)


def repair_private_markers(user: User) -> int:
    """Re-run the sweep for the user's current setting. Returns rows fixed."""
    with transaction.atomic():
        profile = Profile.objects.select_for_update().get(user_id=user.id)
        fixed = (
            Sit.objects
            .filter(user_id=user.id)
            .exclude(private=profile.is_private)
            .update(private=profile.is_private)
        )

    if fixed:
        logger.warning("Repaired %d stale private marker(s) for user %s", fixed, user.id)
    return fixed
