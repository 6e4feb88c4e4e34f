"""
Follow Suggestion Engine
========================

"People you may know": accounts followed by at least `threshold` of the
accounts the user follows.

QUERY:
------
SELECT u.*, COUNT(r.id) AS shared_count
FROM auth_user u
JOIN journal_relationship r ON r.followed_id = u.id
WHERE r.follower_id IN (<ids the user follows>)
  AND u.id NOT IN (<ids the user follows>)
  AND u.id <> <user id>
GROUP BY u.id
HAVING COUNT(r.id) >= <threshold>
ORDER BY shared_count DESC, u.username
"""

from django.conf import settings
from django.contrib.auth.models import User
from django.db.models import Count, QuerySet

from .exceptions import ValidationError
from . import graph


def users_to_follow(user: User, threshold: int = None) -> QuerySet:
    if threshold is None:
        threshold = settings.JOURNAL['FOLLOW_SUGGESTION_THRESHOLD']
    if threshold < 1:
        raise ValidationError("Suggestion threshold must be at least 1")

    followed = graph.followed_ids(user)
    if not followed:
        return User.objects.none()

    return (
        User.objects
        .filter(reverse_relationships__follower_id__in=followed)
        .exclude(id__in=followed)
        .exclude(id=user.id)
        .annotate(shared_count=Count('reverse_relationships', distinct=True))
        .filter(shared_count__gte=threshold)
        .order_by('-shared_count', 'username')
    )
