"""
Recompute stored aggregates and report drift.

Usage:
    python manage.py check_consistency          # Report only, exit 1 on drift
    python manage.py check_consistency --fix    # Rewrite drifted values
"""

from django.core.management.base import BaseCommand, CommandError

from stock.services import ConsistencyService


class Command(BaseCommand):
    help = 'Check recipe costs and purchase order totals against their detail rows'

    def add_arguments(self, parser):
        parser.add_argument('--fix', action='store_true', help='Repair drifted values')

    def handle(self, *args, **options):
        report = ConsistencyService.check()

        if report['consistent']:
            self.stdout.write(self.style.SUCCESS('All derived values are consistent'))
            return

        for finding in report['findings']:
            self.stdout.write(
                f"  {finding['kind']} #{finding['id']} ({finding['label']}) "
                f"{finding['field']}: stored {finding['stored']}, expected {finding['expected']}"
            )

        if not options['fix']:
            raise CommandError(f"{report['count']} drifted values found, run with --fix to repair")

        result = ConsistencyService.repair()
        remaining = ConsistencyService.check()
        if not remaining['consistent']:
            raise CommandError(f"{remaining['count']} values could not be repaired")

        self.stdout.write(self.style.SUCCESS(f"Repaired {result['repaired']} rows"))
