"""Management command to verify that ledger histories reconstruct consistently."""
from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from credits.services.audit import audit_author, authors_with_entries


class Command(BaseCommand):
    help = "Check that backward and forward balance reconstruction agree for every author."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--author",
            dest="author_ids",
            action="append",
            type=int,
            help="Audit only the given author id. Can be supplied multiple times.",
        )

    def handle(self, *args, **options) -> None:
        author_ids = options.get("author_ids") or list(authors_with_entries())
        if not author_ids:
            self.stdout.write(self.style.WARNING("No ledger entries to audit."))
            return

        failing = 0
        for author_id in author_ids:
            audit = audit_author(author_id)
            if audit.ok:
                self.stdout.write(f"Author {author_id}: {audit.entry_count} entries, balance {audit.balance}")
                continue

            failing += 1
            self.stdout.write(
                self.style.ERROR(
                    f"Author {author_id}: mismatched={audit.mismatched_entry_ids} "
                    f"zero={audit.zero_amount_entry_ids} "
                    f"duplicate_purchases={audit.duplicate_purchase_orders}"
                )
            )

        if failing:
            raise CommandError(f"{failing} author ledger(s) failed the audit.")
        self.stdout.write(self.style.SUCCESS(f"Audited {len(author_ids)} author ledger(s); all consistent."))
