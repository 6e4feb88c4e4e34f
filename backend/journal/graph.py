"""
Graph Store
===========

Follow edges (Relationship) and explicit authorisation edges
(AuthorisedUser).

FOLLOW IDEMPOTENCE:
-------------------
Re-following is a no-op for the caller:
1. Pre-check for an existing edge and return it
2. Otherwise insert; the (follower, followed) unique constraint turns a
   concurrent duplicate into IntegrityError, which resolves to the
   winning row

The NewFollower notification is written in the same transaction as the
edge, so an edge never exists without its notification (and vice versa).

PLATFORM ACCOUNT:
-----------------
Every user follows the reserved platform account after signup
(settings.JOURNAL['PLATFORM_ACCOUNT_USERNAME']). following_anyone()
ignores that edge.
"""

import logging
from typing import Iterable, Optional

from django.conf import settings
from django.contrib.auth.models import User
from django.db import IntegrityError, transaction

from . import notifications
from .exceptions import NotFoundError, ValidationError
from .models import AuthorisedUser, Relationship

logger = logging.getLogger(__name__)


def platform_username() -> str:
    return settings.JOURNAL['PLATFORM_ACCOUNT_USERNAME']


def get_platform_account() -> Optional[User]:
    return User.objects.filter(username=platform_username()).first()


def is_following(user: User, other_user: User) -> bool:
    return Relationship.objects.filter(
        follower_id=user.id,
        followed_id=other_user.id
    ).exists()


def followed_ids(user: User) -> set[int]:
    return set(
        Relationship.objects
        .filter(follower_id=user.id)
        .values_list('followed_id', flat=True)
    )


def follower_ids(user: User) -> set[int]:
    return set(
        Relationship.objects
        .filter(followed_id=user.id)
        .values_list('follower_id', flat=True)
    )


def mutual_following_ids(user: User) -> set[int]:
    """Ids of users I follow who also follow me."""
    return followed_ids(user) & follower_ids(user)


def following_anyone(user: User) -> bool:
    """Is the user following anyone besides the platform account?"""
    return (
        Relationship.objects
        .filter(follower_id=user.id)
        .exclude(followed__username=platform_username())
        .exists()
    )


def follow(user: User, followed_id: int, notify: bool = True) -> Relationship:
    """
    Make `user` follow `followed_id`.

    RAISES:
    - ValidationError on a self-follow
    - NotFoundError if the followed user does not exist

    Returns the (new or existing) Relationship.
    """
    if followed_id == user.id:
        raise ValidationError("Users cannot follow themselves")

    try:
        followed = User.objects.get(id=followed_id)
    except User.DoesNotExist:
        raise NotFoundError(f"User {followed_id} does not exist")

    existing = Relationship.objects.filter(follower=user, followed=followed).first()
    if existing:
        return existing

    try:
        with transaction.atomic():
            relationship = Relationship.objects.create(follower=user, followed=followed)
            if notify:
                notifications.send_notification(
                    notifications.NEW_FOLLOWER,
                    followed.id,
                    {'follower': user, 'relationship': relationship}
                )
    except IntegrityError:
        # A concurrent request created the edge first
        return Relationship.objects.get(follower=user, followed=followed)

    logger.info("User %s followed user %s", user.id, followed.id)
    return relationship


def unfollow(user: User, followed_id: int) -> None:
    """Delete the follow edge. NotFoundError if there is none."""
    deleted_count, _ = Relationship.objects.filter(
        follower_id=user.id,
        followed_id=followed_id
    ).delete()

    if not deleted_count:
        raise NotFoundError(f"User {user.id} does not follow user {followed_id}")

    logger.info("User %s unfollowed user %s", user.id, followed_id)


def selected_user_ids(owner: User) -> list[int]:
    return list(
        AuthorisedUser.objects
        .filter(user_id=owner.id)
        .order_by('authorised_user_id')
        .values_list('authorised_user_id', flat=True)
    )


def set_selected_users(owner: User, user_ids: Iterable) -> list[int]:
    """
    Replace the owner's whole grant set in one transaction.

    Blank entries are dropped (form input) and the owner's own id is
    ignored. Unknown ids raise NotFoundError before anything is written.
    """
    try:
        wanted = {int(uid) for uid in user_ids if uid not in (None, '')}
    except (TypeError, ValueError):
        raise ValidationError("Selected users must be user ids")
    wanted.discard(owner.id)

    existing = set(User.objects.filter(id__in=wanted).values_list('id', flat=True))
    missing = wanted - existing
    if missing:
        raise NotFoundError(f"Users {sorted(missing)} do not exist")

    with transaction.atomic():
        AuthorisedUser.objects.filter(user_id=owner.id).delete()
        AuthorisedUser.objects.bulk_create([
            AuthorisedUser(user_id=owner.id, authorised_user_id=uid)
            for uid in sorted(wanted)
        ])

    logger.info("User %s authorised %d user(s)", owner.id, len(wanted))
    return sorted(wanted)
