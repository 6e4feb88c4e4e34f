"""
Write Services: signup, sits, comments, likes, favourites
=========================================================

Every mutating operation is one transaction; the derived side effects
(notifications, counters) are written inside it.

SIGNUP PIPELINE:
----------------
register_user() creates the account and runs an ordered tuple of
post-creation hooks in the same transaction:

    SIGNUP_HOOKS = (follow_platform_account, send_welcome_email)

The platform follow commits (or rolls back) with the account. The welcome
mail is queued with transaction.on_commit and a delivery failure is only
logged; it never fails the signup.

Callers (and tests) pass hooks=() to create an account without the
follow edge or the mail.

LIKE CONCURRENCY:
-----------------
Like rows carry a (user, content_type, object_id) unique constraint.
like() inserts and treats IntegrityError as "already liked"; the like,
its counter update and its notification share one transaction.
"""

import logging
from typing import Literal, Optional

from django.conf import settings
from django.contrib.auth.models import User
from django.contrib.contenttypes.models import ContentType
from django.core.mail import send_mail
from django.db import IntegrityError, transaction
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from .exceptions import NotFoundError, ValidationError
from .models import (
    Comment, Favourite, Like, Likeable, PrivacySetting, Profile, Sit, display_name
)
from . import graph, notifications, privacy
from .queries import get_sit_for_viewer

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
SIT_EDITABLE_FIELDS = ('title', 'body', 'duration', 's_type', 'disable_comments')


# ============================================================================
# SIGNUP
# ============================================================================

def follow_platform_account(user: User) -> None:
    platform = graph.get_platform_account()
    if platform is None:
        logger.warning(
            "Platform account %r missing; user %s follows nobody",
            graph.platform_username(), user.id
        )
        return
    if platform.id == user.id:
        return
    graph.follow(user, platform.id, notify=False)


def _deliver_welcome_email(user: User) -> None:
    try:
        send_mail(
            settings.JOURNAL['WELCOME_EMAIL_SUBJECT'],
            f"Hi {display_name(user)},\n\nWelcome to your new sitting journal.",
            None,
            [user.email],
        )
    except OSError:
        # SMTPException is an OSError
        logger.exception("Welcome email to user %s failed", user.id)


def send_welcome_email(user: User) -> None:
    if not user.email:
        return
    transaction.on_commit(lambda: _deliver_welcome_email(user))


SIGNUP_HOOKS = (follow_platform_account, send_welcome_email)


def validate_username(username: str) -> None:
    if not username or not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters"
        )
    if any(ch.isspace() for ch in username):
        raise ValidationError("Username cannot contain spaces")
    if User.objects.filter(username=username).exists():
        raise ValidationError(f"Username {username!r} is taken")


def register_user(
    username: str,
    email: str,
    password: Optional[str] = None,
    first_name: str = '',
    last_name: str = '',
    hooks=SIGNUP_HOOKS,
) -> User:
    validate_username(username)

    with transaction.atomic():
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )

        for hook in hooks:
            hook(user)

    logger.info("Registered user %s (%s)", user.id, username)
    return user


# ============================================================================
# SITS
# ============================================================================

def _clean_duration(duration) -> int:
    try:
        duration = int(duration)
    except (TypeError, ValueError):
        raise ValidationError("Duration must be a number of minutes")
    if duration < 0:
        raise ValidationError("Duration cannot be negative")
    return duration


def create_sit(
    user: User,
    body: str = '',
    title: str = '',
    duration: Optional[int] = None,
    s_type: int = Sit.SitType.SIT,
    disable_comments: bool = False,
    created_at=None,
) -> Sit:
    """
    Create a sit with a private marker matching the owner's setting.

    Holds the owner's Profile row lock, which serialises against
    visibility.change_privacy_setting().
    """
    if s_type not in Sit.SitType.values:
        raise ValidationError(f"Invalid sit type: {s_type!r}")

    with transaction.atomic():
        profile = Profile.objects.select_for_update().get(user_id=user.id)
        if duration is None:
            duration = profile.default_sit_length

        sit = Sit.objects.create(
            user=user,
            title=(title or '').strip(),
            body=(body or '').strip(),
            duration=_clean_duration(duration),
            s_type=s_type,
            disable_comments=disable_comments,
            private=profile.is_private,
            created_at=created_at or timezone.now(),
        )

    return sit


def _get_own_sit(user: User, sit_id: int) -> Sit:
    sit = Sit.objects.filter(id=sit_id, user_id=user.id).first()
    if sit is None:
        raise NotFoundError(f"Sit {sit_id} does not exist")
    return sit


def update_sit(user: User, sit_id: int, **changes) -> Sit:
    unknown = set(changes) - set(SIT_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    sit = _get_own_sit(user, sit_id)
    if 'duration' in changes:
        changes['duration'] = _clean_duration(changes['duration'])
    if 's_type' in changes and changes['s_type'] not in Sit.SitType.values:
        raise ValidationError(f"Invalid sit type: {changes['s_type']!r}")
    for field in ('title', 'body'):
        if field in changes:
            changes[field] = (changes[field] or '').strip()

    for field, value in changes.items():
        setattr(sit, field, value)
    sit.save(update_fields=[*changes, 'updated_at'])
    return sit


def delete_sit(user: User, sit_id: int) -> None:
    sit = _get_own_sit(user, sit_id)
    content_type = ContentType.objects.get_for_model(Sit)

    with transaction.atomic():
        Favourite.objects.filter(content_type=content_type, object_id=sit.id).delete()
        # Likes go with the sit through the generic relation
        sit.delete()


def record_view(sit: Sit, viewer) -> None:
    """Count a view, unless the owner is looking at their own sit."""
    if not privacy.is_anonymous(viewer) and viewer.id == sit.user_id:
        return
    Sit.objects.filter(id=sit.id).update(views=F('views') + 1)


# ============================================================================
# COMMENTS
# ============================================================================

def add_comment(user: User, sit_id: int, body: str) -> Comment:
    """
    Comment on a sit the user can read.

    Notifies the sit owner ("commented on your sit") and each earlier
    commenter ("also commented on ..."), every recipient once and never
    the commenter.
    """
    body = (body or '').strip()
    if not body:
        raise ValidationError("Comment cannot be empty")

    sit = get_sit_for_viewer(user, sit_id)
    if sit.disable_comments:
        raise ValidationError("Comments are disabled for this sit")

    with transaction.atomic():
        earlier_commenters = list(
            Comment.objects
            .filter(sit_id=sit.id)
            .exclude(user_id__in=[user.id, sit.user_id])
            .order_by('user_id')
            .values_list('user_id', flat=True)
            .distinct()
        )
        comment = Comment.objects.create(sit=sit, user=user, body=body)

        meta = {'commenter': user, 'sit': sit, 'comment': comment}
        notifications.send_notification(
            notifications.NEW_COMMENT, sit.user_id, {**meta, 'mine': True}
        )
        for recipient_id in earlier_commenters:
            notifications.send_notification(
                notifications.NEW_COMMENT, recipient_id, {**meta, 'mine': False}
            )

    return comment


# ============================================================================
# LIKES
# ============================================================================

LIKEABLE_MODELS = {
    'sit': Sit,
    'comment': Comment,
}


class LikeResult:
    """Result of a like operation with type safety."""
    def __init__(
        self,
        success: bool,
        action: Literal['created', 'removed', 'already_exists', 'already_removed'],
    ):
        self.success = success
        self.action = action


def get_likeable(viewer, target_type: str, target_id: int) -> Likeable:
    """Resolve a (target_type, target_id) pair the viewer can read."""
    model = LIKEABLE_MODELS.get(target_type)
    if model is None:
        raise ValidationError(f"Invalid target_type: {target_type}")

    if model is Sit:
        return get_sit_for_viewer(viewer, target_id)

    target = model.objects.select_related('sit', 'sit__user').filter(id=target_id).first()
    if target is None or not privacy.can_view_sit(viewer, target.sit):
        raise NotFoundError(f"{target_type.title()} {target_id} does not exist")
    return target


def like(user: User, target: Likeable) -> LikeResult:
    """
    Like a sit or comment atomically.

    Sit likes bump Sit.like_count and notify the owner (not on self-likes).
    """
    content_type = ContentType.objects.get_for_model(target)

    try:
        with transaction.atomic():
            like_row = Like.objects.create(
                user=user,
                content_type=content_type,
                object_id=target.id
            )

            if isinstance(target, Sit):
                Sit.objects.filter(id=target.id).update(like_count=F('like_count') + 1)
            if isinstance(target, Sit) and target.user_id != user.id:
                notifications.send_notification(
                    notifications.NEW_LIKE_ON_SIT,
                    target.like_recipient().id,
                    {'liker': user, 'sit': target, 'like': like_row}
                )

            return LikeResult(success=True, action='created')

    except IntegrityError:
        return LikeResult(success=False, action='already_exists')


def unlike(user: User, target: Likeable) -> LikeResult:
    content_type = ContentType.objects.get_for_model(target)

    with transaction.atomic():
        deleted_count, _ = Like.objects.filter(
            user=user,
            content_type=content_type,
            object_id=target.id
        ).delete()

        if not deleted_count:
            return LikeResult(success=False, action='already_removed')

        if isinstance(target, Sit):
            Sit.objects.filter(id=target.id, like_count__gt=0).update(
                like_count=F('like_count') - 1
            )
        return LikeResult(success=True, action='removed')


def likes(user: User, target: Likeable) -> bool:
    return Like.objects.filter(
        user_id=user.id,
        content_type=ContentType.objects.get_for_model(target),
        object_id=target.id
    ).exists()


def toggle_like(user: User, target_type: str, target_id: int) -> LikeResult:
    """
    Toggle like on a sit or comment.

    Not atomic across check-and-toggle; two racing toggles end up as a
    no-op and the unique constraint still forbids duplicates.
    """
    target = get_likeable(user, target_type, target_id)
    if likes(user, target):
        return unlike(user, target)
    return like(user, target)


# ============================================================================
# FAVOURITES
# ============================================================================

def favourite(user: User, sit_id: int) -> bool:
    """Bookmark a readable sit. Returns False if it was already a favourite."""
    sit = get_sit_for_viewer(user, sit_id)
    content_type = ContentType.objects.get_for_model(Sit)

    try:
        with transaction.atomic():
            Favourite.objects.create(user=user, content_type=content_type, object_id=sit.id)
    except IntegrityError:
        return False
    return True


def unfavourite(user: User, sit_id: int) -> bool:
    deleted_count, _ = Favourite.objects.filter(
        user_id=user.id,
        content_type=ContentType.objects.get_for_model(Sit),
        object_id=sit_id
    ).delete()
    return deleted_count > 0


def favourited(user: User, sit_id: int) -> bool:
    return Favourite.objects.filter(
        user_id=user.id,
        content_type=ContentType.objects.get_for_model(Sit),
        object_id=sit_id
    ).exists()


def favourite_sits(user: User) -> QuerySet:
    """
    The user's favourite sits that are still readable to them.
    """
    favourite_ids = Favourite.objects.filter(
        user_id=user.id,
        content_type=ContentType.objects.get_for_model(Sit)
    ).values('object_id')

    readable = (
        Q(user_id=user.id) |
        Q(user__profile__privacy_setting=PrivacySetting.PUBLIC) |
        Q(user_id__in=privacy.viewable_user_ids(user))
    )
    return (
        Sit.objects
        .filter(id__in=favourite_ids)
        .filter(readable)
        .select_related('user')
        .order_by('-created_at', '-id')
    )
