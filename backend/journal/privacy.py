"""
Privacy Resolver
================

Decides whether a viewer may read an owner's journal.

PRECEDENCE (first match wins):
------------------------------
1. viewer is owner                 -> visible
2. owner is 'public'               -> visible (anonymous viewers too)
3. owner is 'following'            -> visible iff owner follows viewer
                                      AND viewer follows owner
4. owner is 'selected_users'       -> visible iff AuthorisedUser(owner -> viewer)
5. owner is 'private' (or unknown) -> hidden

Anonymous viewers (None or AnonymousUser) can only pass rule 2.

The privacy_setting is always read from the database, never from a cached
Profile instance, and the Sit.private marker is never consulted.
"""

import logging

from django.contrib.auth.models import User
from django.db.models import Q

from .models import AuthorisedUser, PrivacySetting, Profile, Relationship
from . import graph

logger = logging.getLogger(__name__)


def is_anonymous(viewer) -> bool:
    return viewer is None or not viewer.is_authenticated


def privacy_setting_of(owner_id: int):
    """Current privacy_setting of a user, or None when no profile exists."""
    return (
        Profile.objects
        .filter(user_id=owner_id)
        .values_list('privacy_setting', flat=True)
        .first()
    )


def can_view(viewer, owner: User) -> bool:
    if owner is None:
        return False

    anonymous = is_anonymous(viewer)
    if not anonymous and viewer.id == owner.id:
        return True

    setting = privacy_setting_of(owner.id)
    if setting is None:
        logger.warning("User %s has no profile; denying access", owner.id)
        return False

    if setting == PrivacySetting.PUBLIC:
        return True

    if anonymous:
        return False

    if setting == PrivacySetting.FOLLOWING:
        edges = Relationship.objects.filter(
            Q(follower_id=owner.id, followed_id=viewer.id) |
            Q(follower_id=viewer.id, followed_id=owner.id)
        ).count()
        return edges == 2

    if setting == PrivacySetting.SELECTED_USERS:
        return AuthorisedUser.objects.filter(
            user_id=owner.id,
            authorised_user_id=viewer.id
        ).exists()

    return False


def can_view_sit(viewer, sit) -> bool:
    return can_view(viewer, sit.user)


def viewable_user_ids(viewer) -> set[int]:
    """
    Restricted journals the viewer has been let into: 'following' owners
    with a mutual follow, and 'selected_users' owners who authorised
    the viewer. Public owners are not included.
    """
    if is_anonymous(viewer):
        return set()

    mutual = graph.mutual_following_ids(viewer)

    return set(
        Profile.objects
        .filter(
            Q(privacy_setting=PrivacySetting.FOLLOWING, user_id__in=mutual) |
            Q(
                privacy_setting=PrivacySetting.SELECTED_USERS,
                user__authorised_users__authorised_user_id=viewer.id
            )
        )
        .values_list('user_id', flat=True)
        .distinct()
    )


def public_user_ids():
    """Ids of public journals, as a queryset usable in subqueries."""
    return (
        Profile.objects
        .filter(privacy_setting=PrivacySetting.PUBLIC)
        .values_list('user_id', flat=True)
    )
