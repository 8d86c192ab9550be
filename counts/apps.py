"""Django app configuration for the counts app."""

from django.apps import AppConfig


class CountsConfig(AppConfig):
    """AppConfig for cycle-count sessions and their lines."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "counts"
