"""Management command to run one expiration sweep (schedule it with cron)."""

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from rewardman.services import expiration


class Command(BaseCommand):
    help = "Expire earned points whose validity window has passed"

    def add_arguments(self, parser):
        parser.add_argument(
            "--now",
            default=None,
            help="Reference time (ISO 8601); defaults to current time",
        )
        parser.add_argument(
            "--after-id",
            type=int,
            default=None,
            help="Resume after this account id (checkpoint of a previous run)",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of accounts to process",
        )

    def handle(self, *args, **options):
        now = None
        if options["now"]:
            try:
                now = parse_datetime(options["now"])
            except ValueError:
                now = None
            if now is None:
                raise CommandError(f"Invalid --now value: {options['now']}")
            if timezone.is_naive(now):
                now = timezone.make_aware(now)

        report = expiration.sweep(
            now=now,
            after_id=options["after_id"],
            limit=options["limit"],
        )

        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {report.points_expired} points in {report.entries_expired} entries "
                f"across {report.accounts_processed} accounts."
            )
        )
        if not report.completed:
            self.stdout.write(f"Stopped early; resume with --after-id {report.checkpoint}")
