from django.core.management.base import BaseCommand

from core.services.patients import update_all_patients_with_missing_fields


class Command(BaseCommand):
    help = "Fill blank optional fields on every patient record with display defaults."

    def handle(self, *args, **options):
        updated = update_all_patients_with_missing_fields()
        self.stdout.write(self.style.SUCCESS(f"Backfilled {updated} patient record(s)."))
