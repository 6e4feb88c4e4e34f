"""
Journal App URL Configuration
"""
from django.urls import path
from .views import (
    FeedView,
    ExploreView,
    SitCreateView,
    SitDetailView,
    CommentCreateView,
    LikeSitView,
    LikeToggleView,
    FavouriteView,
    FollowView,
    UserStatsView,
    JournalRangeView,
    SuggestionsView,
    NotificationListView,
    MarkNotificationsReadView,
    PrivacySettingView,
    SelectedUsersView,
)

urlpatterns = [
    # Feeds
    path('feed/', FeedView.as_view(), name='feed'),
    path('explore/', ExploreView.as_view(), name='explore'),

    # Sits
    path('sits/', SitCreateView.as_view(), name='sit-create'),
    path('sits/<int:sit_id>/', SitDetailView.as_view(), name='sit-detail'),
    path('sits/<int:sit_id>/comments/', CommentCreateView.as_view(), name='comment-create'),
    path('sits/<int:sit_id>/like/', LikeSitView.as_view(), name='like-sit'),
    path('sits/<int:sit_id>/favourite/', FavouriteView.as_view(), name='favourite-sit'),

    # Likes (unified endpoint)
    path('likes/toggle/', LikeToggleView.as_view(), name='like-toggle'),

    # Users
    path('users/<str:username>/follow/', FollowView.as_view(), name='follow'),
    path('users/<str:username>/stats/', UserStatsView.as_view(), name='user-stats'),
    path('users/<str:username>/journal-range/', JournalRangeView.as_view(), name='journal-range'),
    path('suggestions/', SuggestionsView.as_view(), name='suggestions'),

    # Notifications
    path('notifications/', NotificationListView.as_view(), name='notifications'),
    path('notifications/mark-read/', MarkNotificationsReadView.as_view(), name='notifications-mark-read'),

    # Account
    path('account/privacy/', PrivacySettingView.as_view(), name='privacy-setting'),
    path('account/selected-users/', SelectedUsersView.as_view(), name='selected-users'),
]
