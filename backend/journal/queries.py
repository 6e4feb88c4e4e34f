"""
Read Helpers
============

Single-object reads that go through the Privacy Resolver, plus the
community listings (active and newest users).

NOT FOUND vs FORBIDDEN:
-----------------------
get_sit_for_viewer() raises NotFoundError both for a missing sit and for
one the viewer may not read, so the two cases are indistinguishable.
"""

import logging
from typing import List, TypedDict

from django.contrib.auth.models import User

from .exceptions import InconsistentStateError, NotFoundError
from .models import Comment, PrivacySetting, Sit
from . import privacy, visibility

logger = logging.getLogger(__name__)


class ActiveUserEntry(TypedDict):
    """Type hint for active-user listings."""
    user_id: int
    username: str
    sits_count: int
    rank: int


def get_user_by_username(username: str) -> User:
    user = User.objects.select_related('profile').filter(username=username).first()
    if user is None:
        raise NotFoundError(f"User {username!r} does not exist")
    return user


def get_sit_for_viewer(viewer, sit_id: int) -> Sit:
    """
    Fetch a sit the viewer is allowed to read.

    Query: 1 (sit + owner + profile) plus the resolver's lookups.

    The visibility decision comes from privacy.can_view(). Only after
    access is granted is a stale private marker logged and repaired.
    """
    sit = (
        Sit.objects
        .select_related('user', 'user__profile')
        .filter(id=sit_id)
        .first()
    )
    if sit is None:
        raise NotFoundError(f"Sit {sit_id} does not exist")

    if not privacy.can_view(viewer, sit.user):
        raise NotFoundError(f"Sit {sit_id} does not exist")

    try:
        visibility.check_private_marker(sit, sit.user.profile.privacy_setting)
    except InconsistentStateError as exc:
        logger.warning("%s; repairing", exc)
        visibility.repair_private_markers(sit.user)
        sit.refresh_from_db(fields=['private'])

    return sit


def get_comments_for_sit(sit_id: int) -> list[Comment]:
    """All comments on a sit, oldest first, authors joined."""
    return list(
        Comment.objects
        .filter(sit_id=sit_id)
        .select_related('user')
        .order_by('created_at', 'id')
    )


def active_users(limit: int = 10) -> List[ActiveUserEntry]:
    """
    Non-private users ordered by number of sits.

    Uses the denormalized Profile.sits_count (index on sits_count).
    """
    users = (
        User.objects
        .filter(is_active=True)
        .exclude(profile__privacy_setting=PrivacySetting.PRIVATE)
        .values('id', 'username', 'profile__sits_count')
        .order_by('-profile__sits_count', 'id')[:limit]
    )

    result: List[ActiveUserEntry] = []
    for rank, entry in enumerate(users, start=1):
        result.append({
            'user_id': entry['id'],
            'username': entry['username'],
            'sits_count': entry['profile__sits_count'] or 0,
            'rank': rank
        })

    return result


def newest_users(count: int = 5) -> list[User]:
    return list(User.objects.order_by('-date_joined', '-id')[:count])
