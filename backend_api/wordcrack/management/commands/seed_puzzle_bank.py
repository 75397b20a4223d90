from django.core.management.base import BaseCommand

from wordcrack.models import PuzzleBankEntry
from wordcrack.seed_utils import ensure_seed_bank


class Command(BaseCommand):
    help = "Seed a starter puzzle bank for any variant that has no entries yet."

    def handle(self, *args, **options):
        # PUBLIC_INTERFACE
        # This command is idempotent and safe to run multiple times.
        inserted = ensure_seed_bank()
        total = PuzzleBankEntry.objects.count()
        if not inserted:
            self.stdout.write(self.style.WARNING(f"Puzzle bank already populated: {total} entries. No action taken."))
            return
        self.stdout.write(self.style.SUCCESS(f"Seeded {inserted} puzzle bank entries ({total} total)."))
