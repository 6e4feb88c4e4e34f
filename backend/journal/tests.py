"""
Tests for SitJournal

Focus areas:
1. Privacy resolution (every mode, anonymous viewers)
2. Private marker propagation and repair
3. Feed composition (readable owners only, no stubs, stable order)
4. Follow graph, suggestions and signup hooks
5. Activity statistics (days, streaks, monthly stats, journal range)
6. Notifications, likes and favourites
7. HTTP adapter (denied reads look like missing ones)
"""

from datetime import date, datetime, time, timedelta
from smtplib import SMTPException
from unittest.mock import patch
from django.db.models.query import QuerySet
from django.test import TestCase, override_settings
from django.contrib.auth.models import AnonymousUser, User
from django.core import mail
from django.utils import timezone
from rest_framework.test import APIClient

from .exceptions import InconsistentStateError, NotFoundError, ValidationError
from .models import (
    Favourite, Like, Notification, PrivacySetting, Profile, Relationship, Sit
)
from . import feed, graph, notifications, privacy, queries, services, stats, suggestions, visibility


def make_user(username, **kwargs):
    return User.objects.create_user(username, f'{username}@test.com', 'pass', **kwargs)


def make_sit(user, body='Quiet sit.', **kwargs):
    return services.create_sit(user, body=body, **kwargs)


def at(day, hour=12):
    return timezone.make_aware(datetime.combine(day, time(hour)))


class PrivacyResolverTestCase(TestCase):
    """
    Test can_view() for each privacy mode.
    """

    def setUp(self):
        self.owner = make_user('owner')
        self.viewer = make_user('viewer')

    def set_privacy(self, setting):
        visibility.change_privacy_setting(self.owner, setting)

    def test_owner_can_always_view_own_journal(self):
        for setting in PrivacySetting.values:
            self.set_privacy(setting)
            self.assertTrue(privacy.can_view(self.owner, self.owner))

    def test_public_journal_visible_to_everyone(self):
        self.assertTrue(privacy.can_view(self.viewer, self.owner))
        self.assertTrue(privacy.can_view(None, self.owner))
        self.assertTrue(privacy.can_view(AnonymousUser(), self.owner))

    def test_anonymous_viewer_denied_for_restricted_modes(self):
        for setting in (PrivacySetting.FOLLOWING, PrivacySetting.SELECTED_USERS, PrivacySetting.PRIVATE):
            self.set_privacy(setting)
            self.assertFalse(privacy.can_view(None, self.owner))
            self.assertFalse(privacy.can_view(AnonymousUser(), self.owner))

    def test_following_requires_mutual_follow(self):
        self.set_privacy(PrivacySetting.FOLLOWING)

        graph.follow(self.viewer, self.owner.id)
        self.assertFalse(privacy.can_view(self.viewer, self.owner))

        graph.follow(self.owner, self.viewer.id)
        self.assertTrue(privacy.can_view(self.viewer, self.owner))

    def test_owner_following_viewer_alone_is_not_enough(self):
        self.set_privacy(PrivacySetting.FOLLOWING)
        graph.follow(self.owner, self.viewer.id)

        self.assertFalse(privacy.can_view(self.viewer, self.owner))

    def test_selected_users_requires_grant(self):
        self.set_privacy(PrivacySetting.SELECTED_USERS)
        self.assertFalse(privacy.can_view(self.viewer, self.owner))

        graph.set_selected_users(self.owner, [self.viewer.id])
        self.assertTrue(privacy.can_view(self.viewer, self.owner))

        graph.set_selected_users(self.owner, [])
        self.assertFalse(privacy.can_view(self.viewer, self.owner))

    def test_grant_ignored_outside_selected_users_mode(self):
        graph.set_selected_users(self.owner, [self.viewer.id])
        self.set_privacy(PrivacySetting.PRIVATE)

        self.assertFalse(privacy.can_view(self.viewer, self.owner))

    def test_private_hides_journal_even_from_mutual_followers(self):
        graph.follow(self.viewer, self.owner.id)
        graph.follow(self.owner, self.viewer.id)
        self.set_privacy(PrivacySetting.PRIVATE)

        self.assertFalse(privacy.can_view(self.viewer, self.owner))

    def test_resolver_reads_current_setting_not_cached_profile(self):
        cached = User.objects.select_related('profile').get(id=self.owner.id)
        self.assertEqual(cached.profile.privacy_setting, PrivacySetting.PUBLIC)

        Profile.objects.filter(user=self.owner).update(privacy_setting=PrivacySetting.PRIVATE)

        self.assertFalse(privacy.can_view(self.viewer, cached))

    def test_viewable_user_ids(self):
        friend = make_user('friend')
        granter = make_user('granter')
        visibility.change_privacy_setting(friend, PrivacySetting.FOLLOWING)
        visibility.change_privacy_setting(granter, PrivacySetting.SELECTED_USERS)
        graph.follow(self.viewer, friend.id)
        graph.follow(friend, self.viewer.id)
        graph.set_selected_users(granter, [self.viewer.id])

        self.assertEqual(privacy.viewable_user_ids(self.viewer), {friend.id, granter.id})
        self.assertEqual(privacy.viewable_user_ids(None), set())


class FollowGraphTestCase(TestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')

    def test_follow_is_idempotent(self):
        first = graph.follow(self.alice, self.bob.id)
        second = graph.follow(self.alice, self.bob.id)

        self.assertEqual(first.id, second.id)
        self.assertEqual(Relationship.objects.filter(follower=self.alice).count(), 1)
        self.assertEqual(Notification.objects.filter(user=self.bob).count(), 1)

    def test_follow_notifies_followed_user(self):
        relationship = graph.follow(self.alice, self.bob.id)

        notification = Notification.objects.get(user=self.bob)
        self.assertEqual(notification.message, "alice is now following you!")
        self.assertEqual(notification.object_type, Notification.ObjectType.FOLLOW)
        self.assertEqual(notification.object_id, relationship.id)
        self.assertEqual(notification.initiator, self.alice)
        self.assertFalse(notification.viewed)

    def test_cannot_follow_self(self):
        with self.assertRaises(ValidationError):
            graph.follow(self.alice, self.alice.id)

    def test_follow_unknown_user(self):
        with self.assertRaises(NotFoundError):
            graph.follow(self.alice, 999999)

    def test_unfollow(self):
        graph.follow(self.alice, self.bob.id)
        graph.unfollow(self.alice, self.bob.id)

        self.assertFalse(graph.is_following(self.alice, self.bob))

    def test_unfollow_without_edge_raises(self):
        with self.assertRaises(NotFoundError):
            graph.unfollow(self.alice, self.bob.id)

    def test_following_anyone_ignores_platform_account(self):
        platform = make_user('opensit')
        graph.follow(self.alice, platform.id, notify=False)
        self.assertFalse(graph.following_anyone(self.alice))

        graph.follow(self.alice, self.bob.id)
        self.assertTrue(graph.following_anyone(self.alice))

    def test_set_selected_users_replaces_grants(self):
        carol = make_user('carol')
        graph.set_selected_users(self.alice, [self.bob.id])
        result = graph.set_selected_users(self.alice, [carol.id, '', self.alice.id])

        self.assertEqual(result, [carol.id])
        self.assertEqual(graph.selected_user_ids(self.alice), [carol.id])

    def test_set_selected_users_unknown_id_writes_nothing(self):
        graph.set_selected_users(self.alice, [self.bob.id])

        with self.assertRaises(NotFoundError):
            graph.set_selected_users(self.alice, [999999])

        self.assertEqual(graph.selected_user_ids(self.alice), [self.bob.id])


class VisibilityPropagatorTestCase(TestCase):
    """
    Sit.private must equal (privacy_setting == 'private') after every change.
    """

    def setUp(self):
        self.user = make_user('sitter')
        self.sits = [make_sit(self.user) for _ in range(3)]

    def markers(self):
        return set(Sit.objects.filter(user=self.user).values_list('private', flat=True))

    def test_new_sits_of_public_user_are_not_private(self):
        self.assertEqual(self.markers(), {False})

    def test_going_private_marks_every_sit(self):
        previous = visibility.change_privacy_setting(self.user, PrivacySetting.PRIVATE)

        self.assertEqual(previous, PrivacySetting.PUBLIC)
        self.assertEqual(self.markers(), {True})

    def test_sit_created_while_private_is_marked(self):
        visibility.change_privacy_setting(self.user, PrivacySetting.PRIVATE)
        sit = make_sit(self.user)

        self.assertTrue(sit.private)

    def test_round_trip_clears_markers(self):
        visibility.change_privacy_setting(self.user, PrivacySetting.PRIVATE)
        make_sit(self.user)
        visibility.change_privacy_setting(self.user, PrivacySetting.PUBLIC)

        self.assertEqual(self.markers(), {False})
        self.assertEqual(Sit.objects.filter(user=self.user).count(), 4)

    def test_non_private_transition_leaves_sits_untouched(self):
        swept = visibility.on_privacy_setting_changed(
            self.user, PrivacySetting.PUBLIC, PrivacySetting.FOLLOWING
        )
        self.assertEqual(swept, 0)

        visibility.change_privacy_setting(self.user, PrivacySetting.SELECTED_USERS)
        self.assertEqual(self.markers(), {False})

    def test_invalid_setting_rejected(self):
        with self.assertRaises(ValidationError):
            visibility.change_privacy_setting(self.user, 'friends')

        self.assertEqual(privacy.privacy_setting_of(self.user.id), PrivacySetting.PUBLIC)

    def test_stale_marker_detected_and_repaired(self):
        Sit.objects.filter(id=self.sits[0].id).update(private=True)

        with self.assertRaises(InconsistentStateError) as ctx:
            visibility.verify_private_markers(self.user)
        self.assertEqual(ctx.exception.sit_ids, [self.sits[0].id])

        self.assertEqual(visibility.repair_private_markers(self.user), 1)
        visibility.verify_private_markers(self.user)

    def test_sit_read_repairs_stale_marker(self):
        Sit.objects.filter(id=self.sits[0].id).update(private=True)

        with self.assertLogs('journal.queries', level='WARNING'):
            sit = queries.get_sit_for_viewer(self.user, self.sits[0].id)

        self.assertFalse(sit.private)
        self.assertEqual(visibility.find_inconsistent_sits(self.user), [])

    def test_denied_read_does_not_repair(self):
        visibility.change_privacy_setting(self.user, PrivacySetting.FOLLOWING)
        Sit.objects.filter(id=self.sits[0].id).update(private=True)

        with self.assertRaises(NotFoundError):
            queries.get_sit_for_viewer(None, self.sits[0].id)

        self.assertEqual(visibility.find_inconsistent_sits(self.user), [self.sits[0].id])

    def test_sit_creation_and_privacy_change_share_profile_lock(self):
        """
        Both writers lock the owner's Profile row, so a sit created during
        a sweep is ordered before it (and swept) or after it.
        """
        locked_models = []
        original = QuerySet.select_for_update

        def tracking(queryset, *args, **kwargs):
            locked_models.append(queryset.model)
            return original(queryset, *args, **kwargs)

        with patch.object(QuerySet, 'select_for_update', autospec=True, side_effect=tracking):
            make_sit(self.user)
            self.assertEqual(locked_models, [Profile])

            visibility.change_privacy_setting(self.user, PrivacySetting.PRIVATE)
            self.assertEqual(locked_models, [Profile, Profile])


class FeedComposerTestCase(TestCase):
    def setUp(self):
        self.viewer = make_user('viewer')

        self.public = make_user('public')
        self.mutual = make_user('mutual')
        self.one_way = make_user('one_way')
        self.granter = make_user('granter')
        self.hermit = make_user('hermit')
        self.stranger = make_user('stranger')

        visibility.change_privacy_setting(self.mutual, PrivacySetting.FOLLOWING)
        visibility.change_privacy_setting(self.one_way, PrivacySetting.FOLLOWING)
        visibility.change_privacy_setting(self.granter, PrivacySetting.SELECTED_USERS)
        visibility.change_privacy_setting(self.hermit, PrivacySetting.PRIVATE)

        for user in (self.public, self.mutual, self.one_way, self.granter, self.hermit):
            graph.follow(self.viewer, user.id)
        graph.follow(self.mutual, self.viewer.id)
        graph.follow(self.hermit, self.viewer.id)
        graph.set_selected_users(self.granter, [self.viewer.id])

        self.sits = {
            user.username: make_sit(user, body=f"{user.username} sat")
            for user in (self.public, self.mutual, self.one_way, self.granter, self.hermit, self.stranger)
        }

    def feed_owners(self, viewer):
        return {sit.user.username for sit in feed.feed_for(viewer)}

    def test_feed_contains_only_readable_owners(self):
        self.assertEqual(self.feed_owners(self.viewer), {'public', 'mutual', 'granter'})

    def test_every_feed_owner_passes_resolver(self):
        for sit in feed.feed_for(self.viewer):
            self.assertTrue(privacy.can_view(self.viewer, sit.user))

    def test_anonymous_feed_is_public_journals(self):
        self.assertEqual(self.feed_owners(None), {'public', 'stranger'})
        self.assertEqual(self.feed_owners(AnonymousUser()), {'public', 'stranger'})

    def test_stubs_excluded(self):
        stub = make_sit(self.public, body='   ')
        self.assertTrue(stub.is_stub)

        self.assertNotIn(stub.id, [sit.id for sit in feed.feed_for(self.viewer)])
        self.assertNotIn(stub.id, [sit.id for sit in feed.explore_sits()])

    def test_whitespace_body_saved_directly_is_excluded(self):
        stub = Sit.objects.create(user=self.public, body='   \n\t')
        padded = Sit.objects.create(user=self.public, body='\n  Calm breath.')
        self.assertTrue(stub.is_stub)

        feed_ids = [sit.id for sit in feed.feed_for(self.viewer)]
        self.assertNotIn(stub.id, feed_ids)
        self.assertIn(padded.id, feed_ids)
        self.assertNotIn(stub.id, [sit.id for sit in feed.explore_sits()])

    def test_ordering_newest_first_with_id_tiebreak(self):
        moment = timezone.now() + timedelta(hours=1)
        first = make_sit(self.public, body='same time one', created_at=moment)
        second = make_sit(self.public, body='same time two', created_at=moment)
        older = make_sit(self.public, body='older', created_at=moment - timedelta(days=3))

        ids = [sit.id for sit in feed.feed_for(self.viewer)]
        self.assertEqual(ids[:2], [second.id, first.id])
        self.assertLess(ids.index(second.id), ids.index(older.id))
        self.assertEqual(ids, [sit.id for sit in feed.feed_for(self.viewer)])

    def test_feed_follows_privacy_changes(self):
        visibility.change_privacy_setting(self.public, PrivacySetting.PRIVATE)

        self.assertNotIn('public', self.feed_owners(self.viewer))

    def test_sits_visible_to(self):
        self.assertEqual(feed.sits_visible_to(self.viewer, self.hermit).count(), 0)
        self.assertEqual(feed.latest_sit(self.mutual, self.viewer), self.sits['mutual'])


class SuggestionsTestCase(TestCase):
    def setUp(self):
        self.user = make_user('user')
        self.buddha = make_user('buddha')
        self.ananda = make_user('ananda')
        self.anuruddha = make_user('anuruddha')

    def test_suggests_users_followed_by_followees(self):
        graph.follow(self.ananda, self.buddha.id)
        graph.follow(self.anuruddha, self.buddha.id)
        graph.follow(self.user, self.ananda.id)
        graph.follow(self.user, self.anuruddha.id)

        result = list(suggestions.users_to_follow(self.user))
        self.assertEqual(result, [self.buddha])
        self.assertEqual(result[0].shared_count, 2)

    def test_does_not_suggest_already_followed(self):
        graph.follow(self.ananda, self.buddha.id)
        graph.follow(self.anuruddha, self.buddha.id)
        graph.follow(self.user, self.ananda.id)
        graph.follow(self.user, self.anuruddha.id)
        graph.follow(self.user, self.buddha.id)

        self.assertEqual(list(suggestions.users_to_follow(self.user)), [])

    def test_does_not_suggest_myself(self):
        graph.follow(self.ananda, self.user.id)
        graph.follow(self.anuruddha, self.user.id)
        graph.follow(self.user, self.ananda.id)
        graph.follow(self.user, self.anuruddha.id)

        self.assertEqual(list(suggestions.users_to_follow(self.user)), [])

    def test_threshold(self):
        graph.follow(self.ananda, self.buddha.id)
        graph.follow(self.user, self.ananda.id)

        self.assertEqual(list(suggestions.users_to_follow(self.user)), [])
        self.assertEqual(list(suggestions.users_to_follow(self.user, threshold=1)), [self.buddha])

        with self.assertRaises(ValidationError):
            suggestions.users_to_follow(self.user, threshold=0)

    def test_no_followees_no_suggestions(self):
        self.assertEqual(list(suggestions.users_to_follow(self.user)), [])


class ActivityStatsTestCase(TestCase):
    def setUp(self):
        self.user = make_user('sitter')
        self.today = date(2024, 3, 10)

    def sit_on(self, day, duration=30, hour=12):
        return make_sit(self.user, duration=duration, created_at=at(day, hour))

    def days_ago(self, n):
        return self.today - timedelta(days=n)

    def test_days_sat_counts_distinct_days(self):
        self.sit_on(self.days_ago(1), hour=7)
        self.sit_on(self.days_ago(1), hour=19)
        self.sit_on(self.days_ago(3))

        self.assertEqual(stats.days_sat_in_date_range(self.user, self.days_ago(7), self.today), 2)

    def test_range_is_inclusive_of_end_day(self):
        self.make_edge_sits()

        self.assertEqual(stats.days_sat_in_date_range(self.user, self.today, self.today), 1)
        self.assertEqual(stats.sits_in_date_range(self.user, self.today, self.today).count(), 1)

    def make_edge_sits(self):
        end_of_day = timezone.make_aware(datetime.combine(self.today, time(23, 59, 59)))
        next_midnight = timezone.make_aware(datetime.combine(self.today + timedelta(days=1), time.min))
        make_sit(self.user, created_at=end_of_day)
        make_sit(self.user, created_at=next_midnight)

    def test_min_minutes_sums_sits_on_a_day(self):
        self.sit_on(self.today, duration=10, hour=7)
        self.sit_on(self.today, duration=10, hour=19)

        self.assertEqual(
            stats.days_sat_for_min_x_minutes_in_date_range(self.user, 30, self.today, self.today), 0
        )
        self.assertEqual(
            stats.days_sat_for_min_x_minutes_in_date_range(self.user, 20, self.today, self.today), 1
        )

    def test_invalid_range(self):
        with self.assertRaises(ValidationError):
            stats.days_sat_in_date_range(self.user, self.today, self.days_ago(1))

    def test_sat_on_date(self):
        self.sit_on(self.today, duration=25)

        self.assertTrue(stats.sat_on_date(self.user, self.today))
        self.assertFalse(stats.sat_on_date(self.user, self.days_ago(1)))
        self.assertEqual(stats.time_sat_on_date(self.user, self.today), 25)
        self.assertTrue(stats.sat_for_x_on_date(self.user, 25, self.today))
        self.assertFalse(stats.sat_for_x_on_date(self.user, 26, self.today))

    def test_streak_three_days(self):
        for n in (0, 1, 2):
            self.sit_on(self.days_ago(n))

        self.assertEqual(stats.streak(self.user, today=self.today), 3)

    def test_streak_two_days(self):
        self.sit_on(self.today)
        self.sit_on(self.days_ago(1))

        self.assertEqual(stats.streak(self.user, today=self.today), 2)

    def test_streak_collapses_without_sit_today(self):
        self.sit_on(self.days_ago(1))
        self.sit_on(self.days_ago(2))

        self.assertEqual(stats.streak(self.user, today=self.today), 0)

    def test_streak_requires_yesterday(self):
        self.sit_on(self.today)
        self.sit_on(self.days_ago(2))

        self.assertEqual(stats.streak(self.user, today=self.today), 0)

    def test_streak_single_day_is_zero(self):
        self.sit_on(self.today)

        self.assertEqual(stats.streak(self.user, today=self.today), 0)

    def test_streak_stops_at_gap(self):
        for n in (0, 1, 2, 5, 6):
            self.sit_on(self.days_ago(n))
        self.sit_on(self.today, hour=18)

        self.assertEqual(stats.streak(self.user, today=self.today), 3)

    def test_monthly_stats(self):
        self.sit_on(date(2024, 3, 1), duration=30)
        self.sit_on(date(2024, 3, 5), duration=45)
        self.sit_on(date(2024, 2, 29), duration=60)

        monthly = stats.get_monthly_stats(self.user, 3, 2024)
        self.assertEqual(monthly, {
            'days_sat_this_month': 2,
            'time_sat_this_month': '1 hours 15 minutes',
            'minutes_sat_this_month': 75,
            'entries_this_month': 2,
        })
        self.assertEqual(stats.time_sat_this_month(self.user, 2, 2024), '1 hours')

    def test_invalid_month(self):
        with self.assertRaises(ValidationError):
            stats.get_monthly_stats(self.user, 13, 2024)
        with self.assertRaises(ValidationError):
            stats.get_monthly_stats(self.user, 'march', 2024)
        with self.assertRaises(ValidationError):
            stats.time_sat_this_month(self.user, 3, None)

    def test_invalid_year(self):
        for year in (0, 10000, 'soon'):
            with self.assertRaises(ValidationError):
                stats.sits_by_year(self.user, year)

    def test_range_end_out_of_bounds(self):
        with self.assertRaises(ValidationError):
            stats.days_sat_in_date_range(self.user, self.today, date.max)

    def test_total_hours_sat(self):
        self.sit_on(self.today, duration=90)
        self.sit_on(self.days_ago(1), duration=45)

        self.assertEqual(stats.total_hours_sat(self.user), 2)

    def test_sits_by_year(self):
        self.sit_on(date(2023, 12, 31))
        self.sit_on(date(2024, 1, 1))

        self.assertEqual(stats.sits_by_year(self.user, 2024).count(), 1)

    def test_journal_range(self):
        self.sit_on(date(2023, 11, 20))
        self.sit_on(date(2024, 1, 3))
        self.sit_on(date(2024, 1, 4))
        self.sit_on(date(2024, 3, 2))

        result = stats.journal_range(self.user, today=date(2024, 3, 15))

        self.assertEqual(result['sitting_totals'], [(2024, 3), (3, 1), (1, 2), (2023, 1), (11, 1)])
        self.assertEqual(result['list_of_months'], ['2024 03', '2024 01', '2023 11'])

    def test_journal_range_empty(self):
        self.assertIsNone(stats.journal_range(self.user, today=self.today))


class NotificationTestCase(TestCase):
    def setUp(self):
        self.owner = make_user('owner')
        self.bob = make_user('bob', first_name='Bob')
        self.carol = make_user('carol', first_name='Carol', last_name='Jones')
        self.sit = make_sit(self.owner)

    def messages_for(self, user):
        return list(
            Notification.objects.filter(user=user).order_by('id').values_list('message', flat=True)
        )

    def test_comment_notifies_owner(self):
        comment = services.add_comment(self.bob, self.sit.id, 'Lovely.')

        notification = Notification.objects.get(user=self.owner)
        self.assertEqual(notification.message, "Bob commented on your sit.")
        self.assertEqual(notification.object_type, Notification.ObjectType.COMMENT)
        self.assertEqual(notification.object_id, comment.id)
        self.assertEqual(notification.link, f"/sits/{self.sit.id}#comment-{comment.id}")

    def test_self_comment_creates_no_notification(self):
        services.add_comment(self.owner, self.sit.id, 'Note to self.')

        self.assertEqual(Notification.objects.count(), 0)

    def test_earlier_commenters_are_notified(self):
        services.add_comment(self.bob, self.sit.id, 'First.')
        services.add_comment(self.carol, self.sit.id, 'Second.')
        services.add_comment(self.owner, self.sit.id, 'Thanks both.')

        self.assertEqual(self.messages_for(self.owner), [
            "Bob commented on your sit.",
            "Carol Jones commented on your sit.",
        ])
        self.assertEqual(self.messages_for(self.bob), [
            "Carol Jones also commented on owner's sit.",
            "owner also commented on their own sit.",
        ])
        self.assertEqual(self.messages_for(self.carol), [
            "owner also commented on their own sit.",
        ])

    def test_repeat_commenter_notified_once_per_comment(self):
        services.add_comment(self.bob, self.sit.id, 'One.')
        services.add_comment(self.bob, self.sit.id, 'Two.')
        services.add_comment(self.carol, self.sit.id, 'Three.')

        self.assertEqual(Notification.objects.filter(user=self.bob).count(), 1)

    def test_comment_updates_counter(self):
        services.add_comment(self.bob, self.sit.id, 'Hi.')
        self.sit.refresh_from_db()

        self.assertEqual(self.sit.comment_count, 1)

    def test_empty_comment_rejected(self):
        with self.assertRaises(ValidationError):
            services.add_comment(self.bob, self.sit.id, '   ')

    def test_comments_disabled(self):
        services.update_sit(self.owner, self.sit.id, disable_comments=True)

        with self.assertRaises(ValidationError):
            services.add_comment(self.bob, self.sit.id, 'Hello?')

    def test_cannot_comment_on_unreadable_sit(self):
        visibility.change_privacy_setting(self.owner, PrivacySetting.PRIVATE)

        with self.assertRaises(NotFoundError):
            services.add_comment(self.bob, self.sit.id, 'Hello?')

    def test_unknown_kind_is_noop(self):
        result = notifications.send_notification('NewMessage', self.owner.id, {})

        self.assertIsNone(result)
        self.assertEqual(Notification.objects.count(), 0)

    def test_like_dispatch_always_notifies_owner(self):
        notification = notifications.send_notification(
            notifications.NEW_LIKE_ON_SIT, self.owner.id, {'liker': self.bob, 'sit': self.sit}
        )

        self.assertEqual(notification.message, "Bob likes your entry.")
        self.assertEqual(notification.link, f"/sits/{self.sit.id}")
        self.assertEqual(notification.object_id, self.sit.id)

    def test_missing_recipient_rejected(self):
        with self.assertRaises(ValidationError):
            notifications.create_notification(
                recipient_id=None,
                message='Hello',
                object_type=Notification.ObjectType.FOLLOW
            )

    def test_mark_all_as_read(self):
        graph.follow(self.bob, self.owner.id)
        graph.follow(self.carol, self.owner.id)
        self.assertEqual(notifications.new_notifications_count(self.owner), 2)

        self.assertEqual(notifications.mark_all_as_read(self.owner), 2)
        self.assertEqual(notifications.new_notifications_count(self.owner), 0)
        self.assertEqual(notifications.mark_all_as_read(self.owner), 0)

    def test_mark_all_as_read_leaves_later_notifications_unread(self):
        graph.follow(self.bob, self.owner.id)
        take_snapshot = notifications.unread_ids

        def snapshot_then_follow(user):
            ids = take_snapshot(user)
            graph.follow(self.carol, self.owner.id)
            return ids

        with patch('journal.notifications.unread_ids', side_effect=snapshot_then_follow):
            marked = notifications.mark_all_as_read(self.owner)

        self.assertEqual(marked, 1)
        unread = notifications.unread_notifications(self.owner).get()
        self.assertEqual(unread.initiator, self.carol)

    def test_long_names_fit_in_message(self):
        owner = make_user('longowner', first_name='O' * 150, last_name='W' * 150)
        writer = make_user('longwriter', first_name='A' * 150, last_name='B' * 150)
        sit = make_sit(owner)
        services.add_comment(owner, sit.id, 'First.')
        services.add_comment(writer, sit.id, 'Second.')
        services.add_comment(self.bob, sit.id, 'Third.')

        message = Notification.objects.get(user=writer).message
        self.assertGreater(len(message), 255)
        self.assertEqual(
            message,
            f"Bob also commented on {'O' * 150} {'W' * 150}'s sit."
        )
        self.assertEqual(
            Notification._meta.get_field('message').get_internal_type(), 'TextField'
        )


class LikeTestCase(TestCase):
    def setUp(self):
        self.owner = make_user('owner')
        self.liker = make_user('liker')
        self.sit = make_sit(self.owner)

    def test_cannot_like_twice(self):
        first = services.like(self.liker, self.sit)
        second = services.like(self.liker, self.sit)

        self.assertEqual(first.action, 'created')
        self.assertEqual(second.action, 'already_exists')
        self.assertEqual(Like.objects.count(), 1)
        self.sit.refresh_from_db()
        self.assertEqual(self.sit.like_count, 1)

    def test_like_notifies_owner(self):
        services.like(self.liker, self.sit)

        notification = Notification.objects.get(user=self.owner)
        self.assertEqual(notification.message, "liker likes your entry.")
        self.assertEqual(notification.object_type, Notification.ObjectType.LIKE)
        self.assertEqual(notification.object_id, Like.objects.get().id)

    def test_self_like_no_notification(self):
        services.like(self.owner, self.sit)

        self.assertEqual(Notification.objects.count(), 0)
        self.sit.refresh_from_db()
        self.assertEqual(self.sit.like_count, 1)

    def test_toggle_like(self):
        self.assertEqual(services.toggle_like(self.liker, 'sit', self.sit.id).action, 'created')
        self.assertEqual(services.toggle_like(self.liker, 'sit', self.sit.id).action, 'removed')
        self.sit.refresh_from_db()
        self.assertEqual(self.sit.like_count, 0)

    def test_like_comment(self):
        comment = services.add_comment(self.liker, self.sit.id, 'Nice.')

        result = services.toggle_like(self.owner, 'comment', comment.id)

        self.assertTrue(result.success)
        self.assertTrue(services.likes(self.owner, comment))

    def test_cannot_like_unreadable_sit(self):
        visibility.change_privacy_setting(self.owner, PrivacySetting.PRIVATE)

        with self.assertRaises(NotFoundError):
            services.toggle_like(self.liker, 'sit', self.sit.id)

    def test_invalid_target_type(self):
        with self.assertRaises(ValidationError):
            services.toggle_like(self.liker, 'profile', self.sit.id)

    def test_delete_sit_removes_likes_and_favourites(self):
        services.like(self.liker, self.sit)
        services.favourite(self.liker, self.sit.id)

        services.delete_sit(self.owner, self.sit.id)

        self.assertEqual(Like.objects.count(), 0)
        self.assertEqual(Favourite.objects.count(), 0)


class FavouriteTestCase(TestCase):
    def setUp(self):
        self.owner = make_user('owner')
        self.reader = make_user('reader')
        self.sit = make_sit(self.owner)

    def test_favourite_is_idempotent(self):
        self.assertTrue(services.favourite(self.reader, self.sit.id))
        self.assertFalse(services.favourite(self.reader, self.sit.id))
        self.assertTrue(services.favourited(self.reader, self.sit.id))

    def test_unfavourite(self):
        services.favourite(self.reader, self.sit.id)

        self.assertTrue(services.unfavourite(self.reader, self.sit.id))
        self.assertFalse(services.unfavourite(self.reader, self.sit.id))

    def test_favourites_hidden_when_journal_goes_private(self):
        services.favourite(self.reader, self.sit.id)
        self.assertEqual(list(services.favourite_sits(self.reader)), [self.sit])

        visibility.change_privacy_setting(self.owner, PrivacySetting.PRIVATE)

        self.assertEqual(list(services.favourite_sits(self.reader)), [])


class SitServiceTestCase(TestCase):
    def setUp(self):
        self.user = make_user('sitter')

    def test_duration_defaults_to_profile(self):
        Profile.objects.filter(user=self.user).update(default_sit_length=20)

        sit = services.create_sit(self.user, body='Short one.')

        self.assertEqual(sit.duration, 20)

    def test_negative_duration_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_sit(self.user, body='x', duration=-5)

    def test_sits_count_tracks_sits(self):
        sit = make_sit(self.user)
        make_sit(self.user)
        self.assertEqual(Profile.objects.get(user=self.user).sits_count, 2)

        services.delete_sit(self.user, sit.id)
        self.assertEqual(Profile.objects.get(user=self.user).sits_count, 1)

    def test_only_owner_can_update(self):
        other = make_user('other')
        sit = make_sit(self.user)

        with self.assertRaises(NotFoundError):
            services.update_sit(other, sit.id, body='Mine now')

    def test_update_rejects_unknown_fields(self):
        sit = make_sit(self.user)

        with self.assertRaises(ValidationError):
            services.update_sit(self.user, sit.id, private=True)

    def test_full_title(self):
        sit = make_sit(self.user, duration=25, created_at=at(date(2024, 3, 10)))
        self.assertEqual(sit.full_title, '25 minute sit')

        titled = make_sit(self.user, title='Dawn')
        self.assertEqual(titled.full_title, 'Dawn')

    def test_view_count_skips_owner(self):
        sit = make_sit(self.user)
        services.record_view(sit, self.user)
        services.record_view(sit, None)
        sit.refresh_from_db()

        self.assertEqual(sit.views, 1)


@override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
class SignupTestCase(TestCase):
    def test_new_user_follows_platform_account(self):
        platform = services.register_user('opensit', 'team@test.com', hooks=())

        user = services.register_user('newbie', 'newbie@test.com', password='pass')

        self.assertTrue(graph.is_following(user, platform))
        self.assertFalse(graph.following_anyone(user))
        self.assertEqual(Notification.objects.count(), 0)
        self.assertEqual(Profile.objects.get(user=user).privacy_setting, PrivacySetting.PUBLIC)

    def test_welcome_email_sent(self):
        with self.captureOnCommitCallbacks(execute=True):
            services.register_user('newbie', 'newbie@test.com')

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Welcome to OpenSit')
        self.assertEqual(mail.outbox[0].to, ['newbie@test.com'])

    def test_mail_failure_does_not_fail_signup(self):
        platform = services.register_user('opensit', 'team@test.com', hooks=())

        with patch('journal.services.send_mail', side_effect=SMTPException('down')):
            with self.assertLogs('journal.services', level='ERROR'):
                with self.captureOnCommitCallbacks(execute=True):
                    user = services.register_user('newbie', 'newbie@test.com')

        self.assertTrue(User.objects.filter(username='newbie').exists())
        self.assertTrue(graph.is_following(user, platform))
        self.assertEqual(len(mail.outbox), 0)

    def test_failed_hook_rolls_back_account(self):
        def broken_hook(user):
            raise ValidationError("hook failed")

        with self.assertRaises(ValidationError):
            services.register_user(
                'newbie', 'newbie@test.com',
                hooks=(services.follow_platform_account, broken_hook)
            )

        self.assertFalse(User.objects.filter(username='newbie').exists())

    def test_missing_platform_account_is_logged(self):
        with self.assertLogs('journal.services', level='WARNING'):
            user = services.register_user('newbie', 'newbie@test.com')

        self.assertEqual(Relationship.objects.filter(follower=user).count(), 0)

    def test_hooks_can_be_skipped(self):
        services.register_user('newbie', 'newbie@test.com', hooks=())

        self.assertEqual(len(mail.outbox), 0)

    def test_username_validation(self):
        with self.assertRaises(ValidationError):
            services.register_user('ab', 'ab@test.com', hooks=())
        with self.assertRaises(ValidationError):
            services.register_user('two words', 'tw@test.com', hooks=())

        services.register_user('taken', 'taken@test.com', hooks=())
        with self.assertRaises(ValidationError):
            services.register_user('taken', 'other@test.com', hooks=())


class ActiveUsersTestCase(TestCase):
    def test_active_users_excludes_private_and_ranks(self):
        busy = make_user('busy')
        quiet = make_user('quiet')
        hidden = make_user('hidden')
        for _ in range(3):
            make_sit(busy)
        make_sit(quiet)
        make_sit(hidden)
        visibility.change_privacy_setting(hidden, PrivacySetting.PRIVATE)

        entries = queries.active_users()

        self.assertEqual([e['username'] for e in entries], ['busy', 'quiet'])
        self.assertEqual(entries[0]['sits_count'], 3)
        self.assertEqual(entries[0]['rank'], 1)


class ApiTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = make_user('owner')
        self.viewer = make_user('viewer')
        self.sit = make_sit(self.owner, body='Morning sit.')

    def test_private_sit_looks_missing(self):
        visibility.change_privacy_setting(self.owner, PrivacySetting.PRIVATE)
        self.client.force_authenticate(self.viewer)

        denied = self.client.get(f'/api/sits/{self.sit.id}/')
        missing = self.client.get('/api/sits/999999/')

        self.assertEqual(denied.status_code, 404)
        self.assertEqual(denied.data, missing.data)

    def test_get_sit_counts_view(self):
        self.client.force_authenticate(self.viewer)

        response = self.client.get(f'/api/sits/{self.sit.id}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['comments'], [])
        self.sit.refresh_from_db()
        self.assertEqual(self.sit.views, 1)

    def test_anonymous_feed(self):
        response = self.client.get('/api/feed/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual([s['id'] for s in response.data['results']], [self.sit.id])

    def test_create_sit_requires_auth(self):
        response = self.client.post('/api/sits/', {'body': 'Hi'}, format='json')
        self.assertIn(response.status_code, (401, 403))

    def test_create_sit(self):
        self.client.force_authenticate(self.viewer)

        response = self.client.post('/api/sits/', {'body': 'Evening.', 'duration': 15}, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['duration'], 15)

    def test_change_privacy_flips_markers(self):
        self.client.force_authenticate(self.owner)

        response = self.client.put('/api/account/privacy/', {'privacy_setting': 'private'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['previous'], 'public')
        self.sit.refresh_from_db()
        self.assertTrue(self.sit.private)

    def test_stats_hidden_for_unreadable_journal(self):
        visibility.change_privacy_setting(self.owner, PrivacySetting.FOLLOWING)
        self.client.force_authenticate(self.viewer)

        response = self.client.get('/api/users/owner/stats/')
        self.assertEqual(response.status_code, 404)

    def test_own_stats(self):
        self.client.force_authenticate(self.owner)

        response = self.client.get('/api/users/owner/stats/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['monthly']['entries_this_month'], 1)
        self.assertEqual(response.data['streak'], 0)

    def test_self_follow_is_bad_request(self):
        self.client.force_authenticate(self.owner)

        response = self.client.post('/api/users/owner/follow/')
        self.assertEqual(response.status_code, 400)

    def test_follow_and_notifications(self):
        self.client.force_authenticate(self.viewer)
        self.assertEqual(self.client.post('/api/users/owner/follow/').status_code, 200)

        self.client.force_authenticate(self.owner)
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['unread_count'], 1)

        response = self.client.post('/api/notifications/mark-read/')
        self.assertEqual(response.data['marked'], 1)

    def test_like_toggle(self):
        self.client.force_authenticate(self.viewer)

        response = self.client.post(
            '/api/likes/toggle/',
            {'target_type': 'sit', 'target_id': self.sit.id},
            format='json'
        )

        self.assertEqual(response.data['action'], 'created')
