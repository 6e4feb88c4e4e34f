"""
Django Signals for Profile creation and denormalized counters.

IMPORTANT: Signals do NOT fire on:
- bulk_create()
- QuerySet.update()

Deletes (including cascades from a deleted User) fire post_delete per row.

The privacy sweeps in visibility.py use QuerySet.update(), so they never
touch these counters.

These signals are used for:
- User creation (every User gets a Profile)
- Sit creation/deletion (Profile.sits_count)
- Comment creation/deletion (Sit.comment_count)
"""

from django.contrib.auth.models import User
from django.db.models import F
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Comment, Profile, Sit


@receiver(post_save, sender=User)
def create_profile(sender, instance, created, raw=False, **kwargs):
    if created and not raw:
        Profile.objects.get_or_create(user=instance)


@receiver(post_save, sender=Sit)
def increment_sits_count(sender, instance, created, **kwargs):
    if created:
        Profile.objects.filter(user_id=instance.user_id).update(
            sits_count=F('sits_count') + 1
        )


@receiver(post_delete, sender=Sit)
def decrement_sits_count(sender, instance, **kwargs):
    Profile.objects.filter(user_id=instance.user_id, sits_count__gt=0).update(
        sits_count=F('sits_count') - 1
    )


@receiver(post_save, sender=Comment)
def increment_comment_count(sender, instance, created, **kwargs):
    if created:
        Sit.objects.filter(id=instance.sit_id).update(
            comment_count=F('comment_count') + 1
        )


@receiver(post_delete, sender=Comment)
def decrement_comment_count(sender, instance, **kwargs):
    Sit.objects.filter(id=instance.sit_id, comment_count__gt=0).update(
        comment_count=F('comment_count') - 1
    )
