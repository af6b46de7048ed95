"""Management command tests."""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from rewardman.models import EntryKind, GiftCard, GiftCardStatus, RewardAccount
from rewardman.services.ledger import RewardLedger

pytestmark = pytest.mark.django_db


def run(name, *args):
    out = StringIO()
    call_command(name, *args, stdout=out)
    return out.getvalue()


class TestExpireGiftCards:
    def test_expires_overdue_cards(self, account):
        card = RewardLedger.append("CUST-001", "cafe", EntryKind.EARN, 100, "x").gift_cards[0]
        GiftCard.objects.filter(pk=card.pk).update(expires_at=timezone.now() - timedelta(days=1))

        assert "Expired 1 gift card(s)" in run("rewardman_expire_gift_cards")
        card.refresh_from_db()
        assert card.status == GiftCardStatus.EXPIRED

    def test_merchant_filter(self, account, other_merchant):
        card = RewardLedger.append("CUST-001", "cafe", EntryKind.EARN, 100, "x").gift_cards[0]
        GiftCard.objects.filter(pk=card.pk).update(expires_at=timezone.now() - timedelta(days=1))

        assert "Expired 0 gift card(s)" in run("rewardman_expire_gift_cards", "--merchant", "bakery")


class TestReconcile:
    def test_clean_ledger(self, account):
        RewardLedger.append("CUST-001", "cafe", EntryKind.EARN, 50, "x")
        assert "0 drifted account(s), 0 repaired, 0 gift card(s) issued." in run("rewardman_reconcile")

    def test_reports_drift_without_repair(self, account):
        RewardLedger.append("CUST-001", "cafe", EntryKind.EARN, 50, "x")
        RewardAccount.objects.filter(pk=account.pk).update(points_balance=70)

        output = run("rewardman_reconcile")

        assert "CUST-001@cafe: balance 70, ledger 50" in output
        account.refresh_from_db()
        assert account.points_balance == 70

    def test_repairs_projection(self, account):
        RewardLedger.append("CUST-001", "cafe", EntryKind.EARN, 50, "x")
        RewardAccount.objects.filter(pk=account.pk).update(points_balance=70, lifetime_points=70)

        output = run("rewardman_reconcile", "--repair-projection")

        assert "1 drifted account(s), 1 repaired" in output
        account.refresh_from_db()
        assert account.points_balance == 50
        assert account.lifetime_points == 50

    def test_issues_missing_gift_cards(self, account):
        RewardLedger.append("CUST-001", "cafe", EntryKind.EARN, 210, "x")
        GiftCard.objects.filter(account=account, sequence=2).delete()

        assert "1 gift card(s) issued" in run("rewardman_reconcile")
        assert set(account.gift_cards.values_list("sequence", flat=True)) == {1, 2}

    def test_dry_run_issues_nothing(self, account):
        RewardLedger.append("CUST-001", "cafe", EntryKind.EARN, 210, "x")
        GiftCard.objects.filter(account=account, sequence=2).delete()

        run("rewardman_reconcile", "--dry-run")
        assert account.gift_cards.count() == 1
