"""
DRF Serializers
===============

Input validation and JSON shapes for the HTTP adapter. Writes go through
services.py / visibility.py / graph.py, never through serializer.save().
"""

from rest_framework import serializers
from django.contrib.auth.models import User

from .models import Comment, Notification, PrivacySetting, Sit, display_name


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""
    display_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'display_name']
        read_only_fields = fields

    def get_display_name(self, obj):
        return display_name(obj)


class SitSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    full_title = serializers.CharField(read_only=True)

    class Meta:
        model = Sit
        fields = [
            'id',
            'user',
            'title',
            'full_title',
            'body',
            's_type',
            'duration',
            'disable_comments',
            'views',
            'like_count',
            'comment_count',
            'created_at',
        ]
        read_only_fields = fields


class SitWriteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    body = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    duration = serializers.IntegerField(min_value=0, required=False)
    s_type = serializers.ChoiceField(choices=Sit.SitType.choices, required=False)
    disable_comments = serializers.BooleanField(required=False)


class CommentSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = Comment
        fields = ['id', 'user', 'body', 'created_at']
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    body = serializers.CharField()

    def validate_body(self, value):
        if not value.strip():
            raise serializers.ValidationError("Comment cannot be empty.")
        return value.strip()


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id',
            'message',
            'link',
            'initiator',
            'object_type',
            'object_id',
            'viewed',
            'created_at',
        ]
        read_only_fields = fields


class PrivacySettingSerializer(serializers.Serializer):
    privacy_setting = serializers.ChoiceField(choices=PrivacySetting.choices)


class SelectedUsersSerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=True
    )


class MonthQuerySerializer(serializers.Serializer):
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField(min_value=1, max_value=9998)


class MonthlyStatsSerializer(serializers.Serializer):
    """Serializer for stats.MonthlyStats."""
    days_sat_this_month = serializers.IntegerField()
    time_sat_this_month = serializers.CharField()
    minutes_sat_this_month = serializers.IntegerField()
    entries_this_month = serializers.IntegerField()


class SuggestionSerializer(UserSerializer):
    shared_count = serializers.IntegerField(read_only=True)

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['shared_count']
        read_only_fields = fields


class LikeActionSerializer(serializers.Serializer):
    target_type = serializers.ChoiceField(choices=['sit', 'comment'])
    target_id = serializers.IntegerField(min_value=1)
