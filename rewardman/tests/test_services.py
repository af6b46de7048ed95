"""
Service tests - purchases, check-ins and challenge management end to end.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from rewardman import RewardService
from rewardman.engine.types import AwardOutcome
from rewardman.exceptions import RewardmanError
from rewardman.models import (
    Challenge,
    ChallengeCompletion,
    Customer,
    EntryKind,
    GiftCard,
    LedgerEntry,
    Visit,
)
from rewardman.services.challenges import ChallengeService
from rewardman.services.checkins import CheckinService
from rewardman.services.points import PointsService
from rewardman.tests.conftest import local

pytestmark = pytest.mark.django_db

MONDAY = local(2026, 3, 2, 10, 0)


def day(n, hour=10):
    return MONDAY + timedelta(days=n, hours=hour - 10)


# ═══════════════════════════════════════════════════════════════════
# award_purchase
# ═══════════════════════════════════════════════════════════════════


class TestAwardPurchase:
    def test_simple_purchase(self, account):
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("25.00"), as_of=MONDAY)

        assert result.outcome == AwardOutcome.AWARDED
        assert result.award.base_points == 25
        assert result.points == 25
        assert result.balance == 25
        assert result.entry.kind == EntryKind.EARN
        assert result.entry.purchase_amount == Decimal("25.00")
        assert result.entry.metadata["award"]["total_points"] == 25

    def test_accepts_string_amount(self, account):
        assert RewardService.award_purchase("CUST-001", "cafe", "12.75").points == 12

    def test_enrolls_new_customer(self, customer, merchant):
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("10"))
        assert result.account.customer == customer

    def test_purchase_crossing_threshold_issues_card(self, account):
        RewardService.award_purchase("CUST-001", "cafe", Decimal("80"), as_of=MONDAY)
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("25"), as_of=day(1))

        assert result.balance == 105
        assert len(result.gift_cards) == 1
        assert result.gift_cards[0].value == Decimal("5")
        assert result.gift_cards[0].status == "available"

    def test_records_visit(self, account):
        result = RewardService.award_purchase(
            "CUST-001", "cafe", Decimal("10"), branch="centro", as_of=MONDAY
        )

        assert result.visit.branch == "centro"
        assert result.visit.purchase_amount == Decimal("10")
        account.refresh_from_db()
        assert account.visits_count == 1
        assert account.last_visit_at == MONDAY

    def test_below_minimum_appends_nothing(self, account, merchant):
        merchant.minimum_purchase = Decimal("5")
        merchant.save()

        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("4.50"))

        assert result.outcome == AwardOutcome.BELOW_MINIMUM_PURCHASE
        assert result.entry is None
        assert LedgerEntry.objects.count() == 0
        assert Visit.objects.count() == 1

    def test_negative_amount(self, account):
        with pytest.raises(RewardmanError) as exc:
            RewardService.award_purchase("CUST-001", "cafe", Decimal("-3"))
        assert exc.value.code == "INVALID_AMOUNT"

    def test_garbage_amount(self, account):
        with pytest.raises(RewardmanError) as exc:
            RewardService.award_purchase("CUST-001", "cafe", "twelve")
        assert exc.value.code == "INVALID_AMOUNT"


class TestDuplicatePurchase:
    def test_retry_returns_original(self, account, big_ticket_challenge):
        first = RewardService.award_purchase(
            "CUST-001", "cafe", Decimal("25"), idempotency_key="pos:8812", as_of=MONDAY
        )
        retry = RewardService.award_purchase(
            "CUST-001", "cafe", Decimal("25"), idempotency_key="pos:8812", as_of=MONDAY
        )

        assert retry.duplicate
        assert retry.outcome == AwardOutcome.DUPLICATE_AWARD
        assert retry.entry.pk == first.entry.pk
        assert retry.award.total_points == first.award.total_points == 35
        assert retry.award.bonus_points == 10
        assert retry.balance == 35
        assert LedgerEntry.objects.count() == 1
        assert Visit.objects.count() == 1
        assert ChallengeCompletion.objects.count() == 1

    def test_same_key_other_amount_conflicts(self, account):
        RewardService.award_purchase("CUST-001", "cafe", Decimal("25"), idempotency_key="pos:1")

        with pytest.raises(RewardmanError) as exc:
            RewardService.award_purchase("CUST-001", "cafe", Decimal("30"), idempotency_key="pos:1")

        assert exc.value.code == "IDEMPOTENCY_CONFLICT"

    def test_key_used_by_adjustment_conflicts(self, account):
        RewardService.append_ledger_entry(
            "CUST-001", "cafe", EntryKind.ADJUSTMENT, 5, "Goodwill", idempotency_key="pos:2"
        )
        with pytest.raises(RewardmanError) as exc:
            RewardService.award_purchase("CUST-001", "cafe", Decimal("25"), idempotency_key="pos:2")
        assert exc.value.code == "IDEMPOTENCY_CONFLICT"


class TestDailyLimitOnPurchases:
    def test_second_purchase_clamped(self, account, merchant):
        merchant.daily_points_limit = 30
        merchant.save()

        RewardService.award_purchase("CUST-001", "cafe", Decimal("20"), as_of=day(0, 9))
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("25"), as_of=day(0, 12))

        assert result.outcome == AwardOutcome.DAILY_LIMIT_CLAMPED
        assert result.points == 10
        assert result.award.clamped_points == 15
        assert result.balance == 30

    def test_cap_resets_next_local_day(self, account, merchant):
        merchant.daily_points_limit = 30
        merchant.save()

        RewardService.award_purchase("CUST-001", "cafe", Decimal("30"), as_of=day(0, 22))
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("25"), as_of=day(1, 7))

        assert result.outcome == AwardOutcome.AWARDED
        assert result.points == 25

    def test_fully_clamped_purchase_appends_nothing(self, account, merchant):
        merchant.daily_points_limit = 20
        merchant.save()

        RewardService.award_purchase("CUST-001", "cafe", Decimal("20"), as_of=day(0, 9))
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("10"), as_of=day(0, 10))

        assert result.points == 0
        assert result.entry is None
        assert LedgerEntry.objects.count() == 1


class TestChallengesOnPurchases:
    def test_weekly_frequency_bonus_on_third_visit_only(self, account, weekly_challenge):
        points = [
            RewardService.award_purchase("CUST-001", "cafe", Decimal("5"), as_of=day(n)).points
            for n in range(4)
        ]
        assert points == [5, 5, 25, 5]

        completion = ChallengeCompletion.objects.get()
        assert completion.challenge == weekly_challenge
        assert completion.points == 20
        assert completion.window_start == local(2026, 3, 2)

    def test_weekly_frequency_again_next_week(self, account, weekly_challenge):
        for n in (0, 1, 2, 7, 8):
            RewardService.award_purchase("CUST-001", "cafe", Decimal("5"), as_of=day(n))
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("5"), as_of=day(9))

        assert result.award.bonus_points == 20
        assert ChallengeCompletion.objects.count() == 2

    def test_check_ins_count_as_visits(self, customer, merchant, weekly_challenge):
        CheckinService.check_in("cafe", "+593991234567", as_of=day(0))
        CheckinService.check_in("cafe", "+593991234567", as_of=day(1))

        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("5"), as_of=day(2))
        assert result.award.bonus_points == 20

    def test_completion_snapshots_name_and_version(self, account, big_ticket_challenge):
        ChallengeService.update(big_ticket_challenge.pk, name="Ticket grande")
        RewardService.award_purchase("CUST-001", "cafe", Decimal("25"), as_of=MONDAY)
        ChallengeService.update(big_ticket_challenge.pk, points=50)

        completion = ChallengeCompletion.objects.get()
        assert completion.challenge_name == "Ticket grande"
        assert completion.challenge_version == 2
        entry = LedgerEntry.objects.get()
        assert entry.metadata["award"]["bonuses"][0]["challenge_version"] == 2

    def test_paused_challenge_gives_nothing(self, account, big_ticket_challenge):
        ChallengeService.pause(big_ticket_challenge.pk)
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("25"))
        assert result.award.bonuses == ()

    def test_category_challenge(self, account, merchant):
        ChallengeService.create("cafe", "Coffee lover", "category", {"categories": ["coffee"]}, 8)
        result = RewardService.award_purchase(
            "CUST-001", "cafe", Decimal("3"), categories=["Coffee", "bakery"]
        )
        assert result.points == 11

    def test_clamped_bonus_completion_keeps_granted_points(self, account, merchant, big_ticket_challenge):
        merchant.daily_points_limit = 30
        merchant.save()

        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("25"), as_of=MONDAY)

        assert result.points == 30
        assert ChallengeCompletion.objects.get().points == 5


class TestCalculatePoints:
    def test_preview_writes_nothing(self, account, big_ticket_challenge):
        award = RewardService.calculate_points("cafe", Decimal("25"), customer_code="CUST-001")

        assert award.total_points == 35
        assert LedgerEntry.objects.count() == 0
        assert Visit.objects.count() == 0

    def test_preview_for_unknown_customer(self, merchant):
        award = RewardService.calculate_points("cafe", Decimal("25.90"))
        assert award.base_points == 25

    def test_preview_counts_pending_visit(self, account, weekly_challenge):
        for n in range(2):
            RewardService.award_purchase("CUST-001", "cafe", Decimal("5"), as_of=day(n))
        award = RewardService.calculate_points(
            "cafe", Decimal("5"), customer_code="CUST-001", as_of=day(2)
        )
        assert award.bonus_points == 20

    def test_unknown_merchant(self, db):
        with pytest.raises(RewardmanError) as exc:
            RewardService.calculate_points("nope", Decimal("5"))
        assert exc.value.code == "MERCHANT_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════
# Check-ins
# ═══════════════════════════════════════════════════════════════════


class TestCheckin:
    def test_first_check_in_creates_customer(self, merchant):
        result = RewardService.check_in("cafe", "0991234567", first_name="Ana")

        assert result.created
        assert result.customer.phone == "+593991234567"
        assert result.customer.code.startswith("CUST-")
        assert result.account.visits_count == 1
        assert result.visit.source == "qr"

    def test_returning_customer_found_by_phone(self, customer, merchant):
        result = RewardService.check_in("cafe", "099 123 4567")

        assert not result.created
        assert result.customer == customer
        assert Customer.objects.count() == 1

    def test_names_only_fill_blanks(self, customer, merchant):
        RewardService.check_in("cafe", "+593991234567", first_name="Other", last_name="Name")
        customer.refresh_from_db()
        assert customer.first_name == "Maria"

    def test_invalid_phone(self, merchant):
        with pytest.raises(RewardmanError) as exc:
            RewardService.check_in("cafe", "12")
        assert exc.value.code == "INVALID_PHONE"

    def test_unknown_merchant(self, db):
        with pytest.raises(RewardmanError) as exc:
            RewardService.check_in("nope", "+593991234567")
        assert exc.value.code == "MERCHANT_NOT_FOUND"
        assert Customer.objects.count() == 0

    def test_get_by_phone(self, customer):
        assert CheckinService.get_by_phone("0991234567") == customer
        assert CheckinService.get_by_phone("not a phone") is None


# ═══════════════════════════════════════════════════════════════════
# Challenge management
# ═══════════════════════════════════════════════════════════════════


class TestChallengeService:
    def test_create_stores_normalized_config(self, merchant):
        challenge = ChallengeService.create(
            "cafe", "Morning", "time_based", {"start_time": "07:00:00", "end_time": "09:00"}, 5
        )
        assert challenge.config == {"start_time": "07:00", "end_time": "09:00"}
        assert challenge.version == 1

    def test_create_rejects_bad_config(self, merchant):
        with pytest.raises(RewardmanError) as exc:
            ChallengeService.create("cafe", "Bad", "frequency", {"period": "weekly"}, 5)
        assert exc.value.code == "INVALID_CHALLENGE_CONFIG"
        assert Challenge.objects.count() == 0

    def test_create_rejects_zero_points(self, merchant):
        with pytest.raises(RewardmanError) as exc:
            ChallengeService.create("cafe", "Free", "amount_min", {"min_amount": "1"}, 0)
        assert exc.value.code == "INVALID_CHALLENGE_CONFIG"

    def test_update_bumps_version_on_meaningful_change(self, big_ticket_challenge):
        ChallengeService.update(big_ticket_challenge.pk, description="Tickets over 20")
        assert ChallengeService.get(big_ticket_challenge.pk).version == 1

        ChallengeService.update(big_ticket_challenge.pk, config={"min_amount": "30"})
        assert ChallengeService.get(big_ticket_challenge.pk).version == 2

    def test_update_unknown(self, db):
        with pytest.raises(RewardmanError) as exc:
            ChallengeService.update(999, name="x")
        assert exc.value.code == "CHALLENGE_NOT_FOUND"

    def test_pause_and_resume(self, big_ticket_challenge):
        assert not ChallengeService.pause(big_ticket_challenge.pk).is_active
        assert ChallengeService.resume(big_ticket_challenge.pk).is_active

    def test_delete_unused(self, big_ticket_challenge):
        ChallengeService.delete(big_ticket_challenge.pk)
        assert Challenge.objects.count() == 0

    def test_delete_with_completions_refused(self, account, big_ticket_challenge):
        RewardService.award_purchase("CUST-001", "cafe", Decimal("25"))

        with pytest.raises(RewardmanError) as exc:
            ChallengeService.delete(big_ticket_challenge.pk)

        assert exc.value.code == "CHALLENGE_HAS_COMPLETIONS"
        assert Challenge.objects.count() == 1

    def test_active_for_respects_validity_window(self, merchant):
        ChallengeService.create(
            "cafe", "Launch week", "amount_min", {"min_amount": "1"}, 5,
            starts_at=local(2026, 3, 2), ends_at=local(2026, 3, 8, 23, 59),
        )
        assert len(ChallengeService.active_for("cafe", local(2026, 3, 4))) == 1
        assert ChallengeService.active_for("cafe", local(2026, 3, 10)) == []


# ═══════════════════════════════════════════════════════════════════
# RewardService facade
# ═══════════════════════════════════════════════════════════════════


class TestRewardService:
    def test_gift_card_round_trip(self, account):
        result = RewardService.award_purchase("CUST-001", "cafe", Decimal("100"))
        code = result.gift_cards[0].code

        assert RewardService.validate_gift_card(code).valid
        RewardService.redeem_gift_card(code, merchant_code="cafe", redeemed_by="cashier")
        assert RewardService.list_gift_cards("CUST-001", status="redeemed")[0].code == code
        assert not RewardService.validate_gift_card(code).valid

    def test_history_and_balance(self, account):
        RewardService.award_purchase("CUST-001", "cafe", Decimal("40"))
        PointsService.redeem_points("CUST-001", "cafe", 15, "Free coffee")
        PointsService.adjust("CUST-001", "cafe", 3, "Goodwill")

        assert RewardService.balance("CUST-001", "cafe") == 28
        kinds = [e.kind for e in RewardService.history("CUST-001", "cafe")]
        assert sorted(kinds) == ["adjustment", "earn", "redemption"]
        assert GiftCard.objects.count() == 0

    def test_gift_card_progress(self, account):
        RewardService.award_purchase("CUST-001", "cafe", Decimal("130"))

        progress = RewardService.gift_card_progress("CUST-001", "cafe")

        assert progress.lifetime_points == 130
        assert progress.next_threshold == 200
        assert progress.points_needed == 70
        assert progress.cards_available == 1
