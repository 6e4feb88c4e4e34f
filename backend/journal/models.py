"""
Data Models for SitJournal
==========================

Design Notes:
-------------
1. Accounts are Django's built-in User; journal attributes live on a
   one-to-one Profile (privacy_setting, counters, location details).
   A Profile row exists for every User (created by signals.py).

2. Follow edges (Relationship) and authorisation edges (AuthorisedUser)
   are plain join tables with a unique constraint per pair.
   - Relationship is directed: follower -> followed
   - AuthorisedUser is only consulted under the 'selected_users' mode

3. Sit.private is a cached projection of the owner's privacy_setting.
   It MUST equal (owner.profile.privacy_setting == 'private') at rest.
   Access control never reads it; privacy.py decides visibility.

4. Likes and Favourites use the ContentType framework as a tagged
   variant (content_type, object_id). Likeable models mix in Likeable.

5. Notification is append-only apart from the `viewed` flag.

Indexes Strategy:
-----------------
- sit.user + sit.created_at: profile pages, feed selection, stats
- relationship.follower / relationship.followed: both graph directions
- notification.user + notification.viewed: unread counts
- like/favourite content_type + object_id: counts per target
"""

from django.db import models
from django.contrib.auth.models import User
from django.contrib.contenttypes.fields import GenericForeignKey, GenericRelation
from django.contrib.contenttypes.models import ContentType
from django.utils import timezone


class PrivacySetting(models.TextChoices):
    PUBLIC = 'public', 'Public'
    FOLLOWING = 'following', 'People I follow back'
    SELECTED_USERS = 'selected_users', 'Selected users'
    PRIVATE = 'private', 'Private'


class Profile(models.Model):
    """
    Journal-specific attributes of a User.
    """
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    privacy_setting = models.CharField(
        max_length=20,
        choices=PrivacySetting.choices,
        default=PrivacySetting.PUBLIC,
        db_index=True
    )
    city = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, blank=True)
    website = models.CharField(max_length=100, blank=True)
    default_sit_length = models.PositiveIntegerField(default=30)
    receive_email = models.BooleanField(default=True)

    # Denormalized for active-user listings - updated via signals
    sits_count = models.PositiveIntegerField(default=0, db_index=True)

    def __str__(self):
        return f"Profile of {self.user.username} ({self.privacy_setting})"

    @property
    def is_private(self) -> bool:
        return self.privacy_setting == PrivacySetting.PRIVATE

    @property
    def display_name(self) -> str:
        return display_name(self.user)

    @property
    def location(self):
        if self.city and self.country:
            return f"{self.city}, {self.country}"
        return self.city or self.country or None


def display_name(user: User) -> str:
    """Username if no first name, first name if no last name, else both."""
    if not user.first_name:
        return user.username
    if not user.last_name:
        return user.first_name
    return f"{user.first_name} {user.last_name}"


class Likeable(models.Model):
    """
    Capability mixin for anything that can be liked.

    Concrete models must have a `user` FK (the owner who receives the like).
    """
    likes = GenericRelation('journal.Like')

    class Meta:
        abstract = True

    def like_recipient(self) -> User:
        return self.user


class Sit(Likeable):
    """
    A journal entry. An empty body marks a stub, which never shows in feeds.
    """

    class SitType(models.IntegerChoices):
        SIT = 0, 'Sit'
        DIARY = 1, 'Diary'
        ARTICLE = 2, 'Article'

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='sits'
    )
    title = models.CharField(max_length=255, blank=True)
    body = models.TextField(blank=True)
    s_type = models.PositiveSmallIntegerField(
        choices=SitType.choices,
        default=SitType.SIT
    )
    # Minutes
    duration = models.PositiveIntegerField(default=0)
    disable_comments = models.BooleanField(default=False)

    # Cached projection of the owner's privacy_setting (see visibility.py)
    private = models.BooleanField(default=False)

    views = models.PositiveIntegerField(default=0)
    like_count = models.PositiveIntegerField(default=0)
    comment_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='sit_user_created_idx'),
        ]

    def __str__(self):
        return f"{self.full_title} by {self.user.username}"

    @property
    def is_stub(self) -> bool:
        return not (self.body or '').strip()

    @property
    def full_title(self) -> str:
        if self.title:
            return self.title
        if self.s_type == self.SitType.SIT:
            return f"{self.duration} minute sit"
        return self.get_s_type_display()


class Comment(Likeable):
    sit = models.ForeignKey(
        Sit,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    body = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['sit', 'created_at'], name='comment_sit_created_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.user.username} on sit {self.sit_id}"


class Relationship(models.Model):
    """
    Directed follow edge: follower follows followed.
    """
    follower = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='relationships'
    )
    followed = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reverse_relationships'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['follower', 'followed'],
                name='unique_relationship_per_pair'
            )
        ]

    def __str__(self):
        return f"{self.follower_id} follows {self.followed_id}"


class AuthorisedUser(models.Model):
    """
    Explicit grant: `user` allows `authorised_user` to read a
    selected_users journal.
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='authorised_users'
    )
    authorised_user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='authorisations_received'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'authorised_user'],
                name='unique_authorisation_per_pair'
            )
        ]

    def __str__(self):
        return f"{self.user_id} authorises {self.authorised_user_id}"


class Notification(models.Model):
    """
    Append-only notification for a recipient (`user`).
    Only `viewed` changes after creation.
    """

    class ObjectType(models.TextChoices):
        COMMENT = 'comment', 'Comment'
        FOLLOW = 'follow', 'Follow'
        LIKE = 'like', 'Like'

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    message = models.TextField()
    link = models.CharField(max_length=255, blank=True)
    initiator = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications_initiated'
    )
    object_type = models.CharField(max_length=20, choices=ObjectType.choices)
    object_id = models.PositiveIntegerField(null=True, blank=True)
    viewed = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'viewed'], name='notification_unread_idx'),
        ]

    def __str__(self):
        return f"To {self.user_id}: {self.message}"


class Like(models.Model):
    """
    Polymorphic like on any Likeable (Sit, Comment).
    Unique per (user, target) at DB level.
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='likes'
    )
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE
    )
    object_id = models.PositiveIntegerField()
    content_object = GenericForeignKey('content_type', 'object_id')

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'content_type', 'object_id'],
                name='unique_like_per_user_per_object'
            )
        ]
        indexes = [
            models.Index(fields=['content_type', 'object_id'], name='like_target_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} liked {self.content_type.model} {self.object_id}"


class Favourite(models.Model):
    """
    Polymorphic bookmark. Only sits are favourited today.
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='favourites'
    )
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE
    )
    object_id = models.PositiveIntegerField()
    content_object = GenericForeignKey('content_type', 'object_id')

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'content_type', 'object_id'],
                name='unique_favourite_per_user_per_object'
            )
        ]
        indexes = [
            models.Index(fields=['content_type', 'object_id'], name='favourite_target_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} favourited {self.content_type.model} {self.object_id}"
