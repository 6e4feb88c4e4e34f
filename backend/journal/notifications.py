"""
Notification Dispatcher
=======================

Turns domain events into persisted Notification rows for a recipient.

EVENT KINDS:
------------
- NewComment   -> recipient is the sit owner (meta['mine']) or an earlier
                  commenter; never the commenter themself
- NewFollower  -> recipient is the followed user
- NewLikeOnSit -> recipient is the sit owner, always (services.like skips
                  self-likes before dispatching)

Unknown kinds are a no-op (no row, no error). Every row starts with
viewed=False.

MARK AS READ:
-------------
mark_all_as_read() snapshots the ids of the currently unread rows and
flips exactly those, so a notification created while the batch runs
stays unread.
"""

import logging
from typing import Any, Optional

from django.contrib.auth.models import User
from django.db import transaction
from django.db.models import QuerySet

from .exceptions import ValidationError
from .models import Notification, display_name

logger = logging.getLogger(__name__)

NEW_COMMENT = 'NewComment'
NEW_FOLLOWER = 'NewFollower'
NEW_LIKE_ON_SIT = 'NewLikeOnSit'


def sit_link(sit_id: int) -> str:
    return f"/sits/{sit_id}"


def profile_link(user: User) -> str:
    return f"/u/{user.username}"


def create_notification(
    *,
    recipient_id: Optional[int],
    message: str,
    link: str = '',
    initiator: Optional[User] = None,
    object_type: str,
    object_id: Optional[int] = None
) -> Notification:
    if not recipient_id:
        raise ValidationError("Notification recipient is required")
    if not message or not message.strip():
        raise ValidationError("Notification message is required")
    if object_type not in Notification.ObjectType.values:
        raise ValidationError(f"Invalid notification object type: {object_type!r}")

    return Notification.objects.create(
        user_id=recipient_id,
        message=message.strip(),
        link=link,
        initiator=initiator,
        object_type=object_type,
        object_id=object_id,
        viewed=False
    )


def _new_comment(recipient_id: int, meta: dict[str, Any]) -> Optional[Notification]:
    commenter = meta['commenter']
    sit = meta['sit']
    comment = meta['comment']

    if commenter.id == recipient_id:
        return None

    name = display_name(commenter)
    if meta.get('mine'):
        message = f"{name} commented on your sit."
    elif sit.user_id == commenter.id:
        message = f"{name} also commented on their own sit."
    else:
        message = f"{name} also commented on {display_name(sit.user)}'s sit."

    return create_notification(
        recipient_id=recipient_id,
        message=message,
        link=f"{sit_link(sit.id)}#comment-{comment.id}",
        initiator=commenter,
        object_type=Notification.ObjectType.COMMENT,
        object_id=comment.id
    )


def _new_follower(recipient_id: int, meta: dict[str, Any]) -> Optional[Notification]:
    follower = meta['follower']
    relationship = meta.get('relationship')

    return create_notification(
        recipient_id=recipient_id,
        message=f"{display_name(follower)} is now following you!",
        link=profile_link(follower),
        initiator=follower,
        object_type=Notification.ObjectType.FOLLOW,
        object_id=relationship.id if relationship else None
    )


def _new_like_on_sit(recipient_id: int, meta: dict[str, Any]) -> Optional[Notification]:
    liker = meta['liker']
    sit = meta['sit']
    like = meta.get('like')

    return create_notification(
        recipient_id=recipient_id,
        message=f"{display_name(liker)} likes your entry.",
        link=sit_link(sit.id),
        initiator=liker,
        object_type=Notification.ObjectType.LIKE,
        object_id=like.id if like else sit.id
    )


_HANDLERS = {
    NEW_COMMENT: _new_comment,
    NEW_FOLLOWER: _new_follower,
    NEW_LIKE_ON_SIT: _new_like_on_sit,
}


def send_notification(kind: str, recipient_id: int, meta: dict[str, Any]) -> Optional[Notification]:
    """
    Dispatch one event. Returns the Notification, or None when the event
    produced nothing (unknown kind, self-notification).
    """
    handler = _HANDLERS.get(kind)
    if handler is None:
        logger.debug("Ignoring unknown notification kind %r", kind)
        return None

    notification = handler(recipient_id, meta)
    if notification is not None:
        logger.debug("Notification %s (%s) -> user %s", notification.id, kind, recipient_id)
    return notification


def unread_notifications(user: User) -> QuerySet:
    return Notification.objects.filter(user_id=user.id, viewed=False)


def new_notifications_count(user: User) -> int:
    return unread_notifications(user).count()


def unread_ids(user: User) -> list[int]:
    return list(unread_notifications(user).values_list('id', flat=True))


def mark_all_as_read(user: User) -> int:
    """Flip `viewed` on the notifications unread right now. Returns the count."""
    with transaction.atomic():
        snapshot = unread_ids(user)
        if not snapshot:
            return 0
        return Notification.objects.filter(
            id__in=snapshot,
            viewed=False
        ).update(viewed=True)
