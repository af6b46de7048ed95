"""Management command to check account projections against the ledger."""

from django.core.management.base import BaseCommand

from rewardman.models import RewardAccount
from rewardman.services.gift_cards import GiftCardIssuer
from rewardman.services.ledger import RewardLedger


class Command(BaseCommand):
    help = "Report balance drift and issue gift cards missing for lifetime points"

    def add_arguments(self, parser):
        parser.add_argument(
            "--merchant",
            default=None,
            help="Only reconcile accounts of this merchant code",
        )
        parser.add_argument(
            "--repair-projection",
            action="store_true",
            help="Rewrite drifted balances from the ledger",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report only; issue no gift cards",
        )

    def handle(self, *args, **options):
        accounts = RewardAccount.objects.select_related("customer", "merchant").order_by("pk")
        if options["merchant"]:
            accounts = accounts.filter(merchant__code=options["merchant"])

        drifted = repaired = issued = 0
        for account in accounts.iterator():
            expected = RewardLedger.recompute_balance(account)
            if expected != account.points_balance:
                drifted += 1
                self.stdout.write(
                    self.style.WARNING(
                        f"{account.customer.code}@{account.merchant.code}: "
                        f"balance {account.points_balance}, ledger {expected}"
                    )
                )
                if options["repair_projection"] and not options["dry_run"]:
                    repaired += RewardLedger.repair_projection(account)

            if not options["dry_run"]:
                issued += len(GiftCardIssuer.reconcile(account))

        self.stdout.write(
            self.style.SUCCESS(
                f"{drifted} drifted account(s), {repaired} repaired, {issued} gift card(s) issued."
            )
        )
