"""
Management command to seed the database with sample journals.

Usage: python manage.py seed_journal
"""

import random
from datetime import timedelta
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from django.utils import timezone

from journal.models import (
    AuthorisedUser, Comment, Favourite, Like, Notification, PrivacySetting, Relationship, Sit
)
from journal import graph, services, visibility


class Command(BaseCommand):
    help = 'Seed the database with sample journals for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of users to create'
        )
        parser.add_argument(
            '--sits',
            type=int,
            default=60,
            help='Number of sits to create'
        )
        parser.add_argument(
            '--days',
            type=int,
            default=60,
            help='Spread sits over this many past days'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Notification.objects.all().delete()
            Like.objects.all().delete()
            Favourite.objects.all().delete()
            Comment.objects.all().delete()
            Sit.objects.all().delete()
            AuthorisedUser.objects.all().delete()
            Relationship.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating platform account...')
        self._ensure_platform_account()

        self.stdout.write('Creating users...')
        users = self._create_users(options['users'])

        self.stdout.write('Creating follows...')
        follows = self._create_follows(users)

        self.stdout.write('Creating sits...')
        sits = self._create_sits(users, options['sits'], options['days'])

        self.stdout.write('Setting privacy...')
        self._assign_privacy(users)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {follows} follow edges\n'
            f'  - {len(sits)} sits'
        ))

    def _ensure_platform_account(self):
        username = graph.platform_username()
        if User.objects.filter(username=username).exists():
            return User.objects.get(username=username)
        return services.register_user(username, f'{username}@example.com', hooks=())

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'sitter{i+1}'
            if not User.objects.filter(username=username).exists():
                user = services.register_user(
                    username,
                    f'{username}@example.com',
                    password='password123',
                    hooks=(services.follow_platform_account,)
                )
                users.append(user)
            else:
                users.append(User.objects.get(username=username))
        return users

    def _create_follows(self, users):
        created = 0
        for user in users:
            others = [u for u in users if u.id != user.id]
            for other in random.sample(others, k=min(3, len(others))):
                if not graph.is_following(user, other):
                    graph.follow(user, other.id)
                    created += 1
        return created

    def _create_sits(self, users, count, days):
        bodies = [
            "Breath was steady today. Mind wandered to work a few times.",
            "Sleepy sit. Tried noting practice for the first ten minutes.",
            "Very calm. Sounds from the street felt far away.",
            "Restless legs, lots of planning thoughts.",
            "",
        ]

        sits = []
        for i in range(count):
            sits.append(services.create_sit(
                random.choice(users),
                body=random.choice(bodies),
                title=f"Morning sit #{i+1}" if random.random() < 0.5 else '',
                duration=random.choice([10, 15, 20, 30, 45, 60]),
                created_at=timezone.now() - timedelta(
                    days=random.randint(0, max(days - 1, 0)),
                    minutes=random.randint(0, 600)
                )
            ))
        return sits

    def _assign_privacy(self, users):
        settings = list(PrivacySetting.values)
        for user in users:
            visibility.change_privacy_setting(user, random.choice(settings))
