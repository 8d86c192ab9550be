"""Django app configuration for the inventory app."""

from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """AppConfig for the stock ledger (locations, stock items, movements)."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"
