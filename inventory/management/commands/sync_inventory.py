from django.core.management.base import BaseCommand
from inventory.services import sync_inventory


class Command(BaseCommand):
    help = "Upsert inventory records (per item and location) from the stock ledger."

    def handle(self, *args, **options):
        stats = sync_inventory()
        self.stdout.write(
            self.style.SUCCESS(
                "Inventory synced: {items} items, {created} created, {updated} updated, "
                "{unchanged} unchanged, {locations_created} locations created".format(**stats)
            )
        )
