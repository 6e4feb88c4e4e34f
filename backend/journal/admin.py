"""
Django Admin Configuration for Journal Models
"""
from django.contrib import admin
from .models import (
    AuthorisedUser, Comment, Favourite, Like, Notification, Profile, Relationship, Sit
)


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'privacy_setting', 'sits_count', 'city', 'country']
    list_filter = ['privacy_setting']
    search_fields = ['user__username', 'city', 'country']
    # Changing privacy must go through visibility.change_privacy_setting()
    readonly_fields = ['privacy_setting', 'sits_count']


@admin.register(Sit)
class SitAdmin(admin.ModelAdmin):
    list_display = ['full_title', 'user', 's_type', 'duration', 'private', 'like_count', 'created_at']
    list_filter = ['s_type', 'private', 'created_at']
    search_fields = ['title', 'body', 'user__username']
    readonly_fields = ['private', 'views', 'like_count', 'comment_count', 'updated_at']


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'sit', 'user', 'created_at']
    list_filter = ['created_at']
    search_fields = ['body', 'user__username']


@admin.register(Relationship)
class RelationshipAdmin(admin.ModelAdmin):
    list_display = ['follower', 'followed', 'created_at']
    search_fields = ['follower__username', 'followed__username']


@admin.register(AuthorisedUser)
class AuthorisedUserAdmin(admin.ModelAdmin):
    list_display = ['user', 'authorised_user']
    search_fields = ['user__username', 'authorised_user__username']


@admin.register(Like)
class LikeAdmin(admin.ModelAdmin):
    list_display = ['user', 'content_type', 'object_id', 'created_at']
    list_filter = ['content_type', 'created_at']
    search_fields = ['user__username']


@admin.register(Favourite)
class FavouriteAdmin(admin.ModelAdmin):
    list_display = ['user', 'content_type', 'object_id', 'created_at']
    search_fields = ['user__username']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'initiator', 'object_type', 'message', 'viewed', 'created_at']
    list_filter = ['object_type', 'viewed', 'created_at']
    search_fields = ['user__username', 'message']
    readonly_fields = ['user', 'message', 'link', 'initiator', 'object_type',
                       'object_id', 'created_at']

    def has_add_permission(self, request):
        # Notifications are created by the dispatcher only
        return False
