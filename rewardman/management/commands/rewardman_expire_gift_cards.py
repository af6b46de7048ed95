"""Management command to expire overdue gift cards."""

from django.core.management.base import BaseCommand

from rewardman.services.gift_cards import GiftCardLifecycle


class Command(BaseCommand):
    help = "Mark available gift cards past their expiry date as expired"

    def add_arguments(self, parser):
        parser.add_argument(
            "--merchant",
            default=None,
            help="Only expire cards of this merchant code",
        )

    def handle(self, *args, **options):
        count = GiftCardLifecycle.expire_overdue(merchant_code=options["merchant"])
        self.stdout.write(self.style.SUCCESS(f"Expired {count} gift card(s)."))
