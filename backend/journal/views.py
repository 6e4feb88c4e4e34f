"""
DRF Views
=========

Thin HTTP adapter over the journal core. Views validate input, call one
core operation and serialize the result; visibility decisions and writes
live in privacy.py, feed.py, services.py and friends.

Journal errors are mapped by exceptions.custom_exception_handler:
NotFoundError -> 404 (also for content the viewer may not read),
ValidationError -> 400.
"""

from django.utils import timezone
from rest_framework import generics, permissions, status
from rest_framework.pagination import CursorPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import NotFoundError
from .serializers import (
    CommentCreateSerializer,
    CommentSerializer,
    LikeActionSerializer,
    MonthlyStatsSerializer,
    MonthQuerySerializer,
    NotificationSerializer,
    PrivacySettingSerializer,
    SelectedUsersSerializer,
    SitSerializer,
    SitWriteSerializer,
    SuggestionSerializer,
)
from . import feed, graph, notifications, privacy, queries, services, stats, suggestions, visibility


class FeedPagination(CursorPagination):
    """Cursor pagination over (created_at, id), newest first."""
    page_size = 10
    ordering = ('-created_at', '-id')
    cursor_query_param = 'cursor'


class FeedView(generics.ListAPIView):
    """
    GET /api/feed/

    Sits from readable followed/granted journals. Guests get public sits.
    """
    serializer_class = SitSerializer
    pagination_class = FeedPagination
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        return feed.feed_for(self.request.user)


class ExploreView(generics.ListAPIView):
    """
    GET /api/explore/
    """
    serializer_class = SitSerializer
    pagination_class = FeedPagination
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        return feed.explore_sits()


class SitCreateView(APIView):
    """
    POST /api/sits/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = SitWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sit = services.create_sit(request.user, **serializer.validated_data)
        return Response(SitSerializer(sit).data, status=status.HTTP_201_CREATED)


class SitDetailView(APIView):
    """
    GET    /api/sits/<id>/  sit + comments (404 when not readable)
    PATCH  /api/sits/<id>/  owner only
    DELETE /api/sits/<id>/  owner only
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, sit_id):
        sit = queries.get_sit_for_viewer(request.user, sit_id)
        services.record_view(sit, request.user)

        data = SitSerializer(sit).data
        data['comments'] = CommentSerializer(
            queries.get_comments_for_sit(sit.id), many=True
        ).data
        if request.user.is_authenticated:
            data['user_liked'] = services.likes(request.user, sit)
            data['user_favourited'] = services.favourited(request.user, sit.id)
        return Response(data)

    def patch(self, request, sit_id):
        serializer = SitWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        sit = services.update_sit(request.user, sit_id, **serializer.validated_data)
        return Response(SitSerializer(sit).data)

    def delete(self, request, sit_id):
        services.delete_sit(request.user, sit_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CommentCreateView(APIView):
    """
    POST /api/sits/<sit_id>/comments/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, sit_id):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = services.add_comment(request.user, sit_id, serializer.validated_data['body'])
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class LikeSitView(APIView):
    """
    POST   /api/sits/<sit_id>/like/
    DELETE /api/sits/<sit_id>/like/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, sit_id):
        target = services.get_likeable(request.user, 'sit', sit_id)
        result = services.like(request.user, target)
        return Response({'success': result.success, 'action': result.action})

    def delete(self, request, sit_id):
        target = services.get_likeable(request.user, 'sit', sit_id)
        result = services.unlike(request.user, target)
        return Response({'success': result.success, 'action': result.action})


class LikeToggleView(APIView):
    """
    POST /api/likes/toggle/

    Body: {"target_type": "sit" | "comment", "target_id": 123}
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = LikeActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.toggle_like(
            request.user,
            serializer.validated_data['target_type'],
            serializer.validated_data['target_id']
        )
        return Response({'success': result.success, 'action': result.action})


class FavouriteView(APIView):
    """
    POST   /api/sits/<sit_id>/favourite/
    DELETE /api/sits/<sit_id>/favourite/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, sit_id):
        created = services.favourite(request.user, sit_id)
        return Response({'favourited': True, 'created': created})

    def delete(self, request, sit_id):
        removed = services.unfavourite(request.user, sit_id)
        return Response({'favourited': False, 'removed': removed})


class FollowView(APIView):
    """
    POST   /api/users/<username>/follow/
    DELETE /api/users/<username>/follow/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, username):
        other = queries.get_user_by_username(username)
        graph.follow(request.user, other.id)
        return Response({'following': True})

    def delete(self, request, username):
        other = queries.get_user_by_username(username)
        graph.unfollow(request.user, other.id)
        return Response({'following': False})


def _readable_owner(request, username):
    owner = queries.get_user_by_username(username)
    if not privacy.can_view(request.user, owner):
        raise NotFoundError(f"User {username!r} does not exist")
    return owner


class UserStatsView(APIView):
    """
    GET /api/users/<username>/stats/?month=M&year=Y

    Month and year default to the current month.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, username):
        owner = _readable_owner(request, username)

        today = timezone.localdate()
        query = MonthQuerySerializer(data={
            'month': request.query_params.get('month', today.month),
            'year': request.query_params.get('year', today.year),
        })
        query.is_valid(raise_exception=True)
        month = query.validated_data['month']
        year = query.validated_data['year']

        return Response({
            'username': owner.username,
            'month': month,
            'year': year,
            'monthly': MonthlyStatsSerializer(
                stats.get_monthly_stats(owner, month, year)
            ).data,
            'streak': stats.streak(owner, today=today),
            'total_hours_sat': stats.total_hours_sat(owner),
        })


class JournalRangeView(APIView):
    """
    GET /api/users/<username>/journal-range/
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, username):
        owner = _readable_owner(request, username)
        journal_range = stats.journal_range(owner)
        if journal_range is None:
            journal_range = {'sitting_totals': [], 'list_of_months': []}
        return Response(journal_range)


class SuggestionsView(APIView):
    """
    GET /api/suggestions/
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        users = suggestions.users_to_follow(request.user)[:20]
        return Response({
            'following_anyone': graph.following_anyone(request.user),
            'suggestions': SuggestionSerializer(users, many=True).data,
        })


class NotificationPagination(CursorPagination):
    page_size = 10
    ordering = ('-created_at', '-id')


class NotificationListView(generics.ListAPIView):
    """
    GET /api/notifications/
    """
    serializer_class = NotificationSerializer
    pagination_class = NotificationPagination
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return self.request.user.notifications.all()

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        response.data['unread_count'] = notifications.new_notifications_count(request.user)
        return response


class MarkNotificationsReadView(APIView):
    """
    POST /api/notifications/mark-read/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        marked = notifications.mark_all_as_read(request.user)
        return Response({'marked': marked})


class PrivacySettingView(APIView):
    """
    PUT /api/account/privacy/

    Body: {"privacy_setting": "public" | "following" | "selected_users" | "private"}
    """
    permission_classes = [permissions.IsAuthenticated]

    def put(self, request):
        serializer = PrivacySettingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_setting = serializer.validated_data['privacy_setting']
        previous = visibility.change_privacy_setting(request.user, new_setting)
        return Response({'privacy_setting': new_setting, 'previous': previous})


class SelectedUsersView(APIView):
    """
    GET /api/account/selected-users/
    PUT /api/account/selected-users/   Body: {"user_ids": [1, 2]}
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({'user_ids': graph.selected_user_ids(request.user)})

    def put(self, request):
        serializer = SelectedUsersSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user_ids = graph.set_selected_users(request.user, serializer.validated_data['user_ids'])
        return Response({'user_ids': user_ids})
