"""
Journal App Configuration
"""
from django.apps import AppConfig


class JournalConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'journal'

    def ready(self):
        # Import signals when app is ready
        import journal.signals  # noqa
