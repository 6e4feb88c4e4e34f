"""
Feed Composer
=============

A viewer's feed is every non-stub sit whose owner is readable, newest
first. It is recomputed on each call; nothing is cached.

READABLE OWNERS:
----------------
- anonymous viewer: public journals only
- signed-in viewer: viewable_user_ids(viewer)
                    UNION (followed_ids(viewer) INTERSECT public journals)

Every owner in the set passes privacy.can_view(viewer, owner); followed
accounts whose journal is restricted only get in through the resolver's
rules, never through the follow edge alone.

ORDERING:
---------
ORDER BY created_at DESC, id DESC - identical timestamps keep a stable,
deterministic order across calls.
"""

from typing import Optional

from django.contrib.auth.models import User
from django.db.models import QuerySet

from .models import PrivacySetting, Profile, Sit
from . import graph, privacy

FEED_ORDERING = ('-created_at', '-id')


def with_body(queryset: QuerySet) -> QuerySet:
    """Drop stubs (sits whose body is empty or only whitespace)."""
    return queryset.exclude(body__regex=r'^\s*$')


def readable_owner_ids(viewer) -> set[int]:
    if privacy.is_anonymous(viewer):
        return set(privacy.public_user_ids())

    followed_public = set(
        Profile.objects
        .filter(
            user_id__in=graph.followed_ids(viewer),
            privacy_setting=PrivacySetting.PUBLIC
        )
        .values_list('user_id', flat=True)
    )
    return privacy.viewable_user_ids(viewer) | followed_public


def feed_for(viewer) -> QuerySet:
    if privacy.is_anonymous(viewer):
        owners = privacy.public_user_ids()
    else:
        owners = readable_owner_ids(viewer)

    return with_body(
        Sit.objects
        .filter(user_id__in=owners)
        .select_related('user')
    ).order_by(*FEED_ORDERING)


def explore_sits() -> QuerySet:
    """Public journals' sits, for the explore page and guests."""
    return with_body(
        Sit.objects
        .filter(user_id__in=privacy.public_user_ids())
        .select_related('user')
    ).order_by(*FEED_ORDERING)


def sits_visible_to(viewer, owner: User) -> QuerySet:
    """The owner's journal as the viewer may see it (stubs included)."""
    if not privacy.can_view(viewer, owner):
        return Sit.objects.none()
    return Sit.objects.filter(user_id=owner.id).order_by(*FEED_ORDERING)


def latest_sit(owner: User, viewer) -> Optional[Sit]:
    return sits_visible_to(viewer, owner).first()
