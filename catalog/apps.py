"""Django app configuration for catalog."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Product directory (categories, products) read by inventory and counts."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "catalog"
