"""
Pure engine tests - no database.

Tests for:
- PointsCalculator (base rate, minimum purchase, daily cap)
- ChallengeEvaluator (each challenge type, windows, limits)
- Challenge config parsing
- Gift card threshold rule
"""

from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from rewardman.engine import (
    AwardOutcome,
    ChallengeEvaluator,
    ChallengeRule,
    CompletionRecord,
    CustomerActivity,
    PointsCalculator,
    ProgramConfig,
    Purchase,
    cards_to_issue,
    missing_sequences,
    parse_challenge_config,
)
from rewardman.engine.challenges import FrequencyConfig, TimeBasedConfig
from rewardman.engine.periods import window_start
from rewardman.engine.points import base_points
from rewardman.engine.types import ChallengeType, Period
from rewardman.exceptions import RewardmanError

TZ = ZoneInfo("America/Guayaquil")

# Monday
MONDAY = datetime(2026, 3, 2, 10, 0, tzinfo=TZ)


def at(days=0, hour=10, minute=0):
    return (MONDAY + timedelta(days=days)).replace(hour=hour, minute=minute)


def rule(id, challenge_type, config, points, **kwargs):
    return ChallengeRule(
        id=id,
        name=f"challenge-{id}",
        challenge_type=ChallengeType(challenge_type),
        config=parse_challenge_config(challenge_type, config),
        points=points,
        **kwargs,
    )


def config(**kwargs):
    kwargs.setdefault("timezone", "America/Guayaquil")
    return ProgramConfig(merchant_code="cafe", **kwargs)


# ═══════════════════════════════════════════════════════════════════
# PointsCalculator
# ═══════════════════════════════════════════════════════════════════


class TestBasePoints:
    def test_whole_amount(self):
        award = PointsCalculator.calculate(Purchase(Decimal("25.00")), config())
        assert award.base_points == 25
        assert award.total_points == 25
        assert award.bonuses == ()
        assert award.outcome == AwardOutcome.AWARDED

    def test_fraction_is_truncated(self):
        assert base_points(Decimal("9.99"), Decimal("1")) == 9
        assert base_points(Decimal("10.50"), Decimal("1.5")) == 15

    def test_rate_applied_before_truncation(self):
        # 3 x 0.33 = 0.99 -> 0, never 3 x floor(0.33)
        assert base_points(Decimal("3"), Decimal("0.33")) == 0
        assert base_points(Decimal("33.33"), Decimal("0.3")) == 9

    def test_zero_amount(self):
        award = PointsCalculator.calculate(Purchase(Decimal("0")), config())
        assert award.total_points == 0

    def test_negative_amount_raises(self):
        with pytest.raises(RewardmanError) as exc:
            PointsCalculator.calculate(Purchase(Decimal("-1")), config())
        assert exc.value.code == "INVALID_AMOUNT"

    def test_below_minimum_purchase(self):
        award = PointsCalculator.calculate(
            Purchase(Decimal("4.99")), config(minimum_purchase=Decimal("5"))
        )
        assert award.outcome == AwardOutcome.BELOW_MINIMUM_PURCHASE
        assert award.total_points == 0

    def test_at_minimum_purchase_earns(self):
        award = PointsCalculator.calculate(
            Purchase(Decimal("5.00")), config(minimum_purchase=Decimal("5"))
        )
        assert award.outcome == AwardOutcome.AWARDED
        assert award.total_points == 5


class TestDailyLimit:
    def test_under_limit_untouched(self):
        award = PointsCalculator.calculate(
            Purchase(Decimal("25")),
            config(daily_points_limit=100),
            CustomerActivity(points_today=50),
        )
        assert award.total_points == 25
        assert not award.is_clamped

    def test_base_clamped_to_headroom(self):
        award = PointsCalculator.calculate(
            Purchase(Decimal("25")),
            config(daily_points_limit=30),
            CustomerActivity(points_today=20),
        )
        assert award.outcome == AwardOutcome.DAILY_LIMIT_CLAMPED
        assert award.base_points == 25
        assert award.total_points == 10
        assert award.requested_points == 25
        assert award.clamped_points == 15

    def test_limit_already_reached(self):
        award = PointsCalculator.calculate(
            Purchase(Decimal("25")),
            config(daily_points_limit=30),
            CustomerActivity(points_today=30),
        )
        assert award.total_points == 0
        assert award.outcome == AwardOutcome.DAILY_LIMIT_CLAMPED

    def test_bonuses_cut_after_base_in_evaluation_order(self):
        challenges = [
            rule(2, "amount_min", {"min_amount": "10"}, 20),
            rule(1, "category", {"categories": ["coffee"]}, 10),
        ]
        award = PointsCalculator.calculate(
            Purchase(Decimal("25"), frozenset({"coffee"})),
            config(daily_points_limit=40),
            CustomerActivity(visits=(at(),)),
            challenges,
            at(),
        )
        assert award.requested_points == 55
        assert award.total_points == 40
        assert [(b.challenge_id, b.points) for b in award.bonuses] == [(1, 10), (2, 5)]

    def test_no_room_for_bonuses_drops_them(self):
        award = PointsCalculator.calculate(
            Purchase(Decimal("25")),
            config(daily_points_limit=25),
            CustomerActivity(visits=(at(),)),
            [rule(1, "amount_min", {"min_amount": "10"}, 10)],
            at(),
        )
        assert award.total_points == 25
        assert award.bonuses == ()

    def test_award_dict_keeps_breakdown(self):
        award = PointsCalculator.calculate(
            Purchase(Decimal("25")),
            config(),
            CustomerActivity(visits=(at(),)),
            [rule(7, "amount_min", {"min_amount": "10"}, 10, version=3)],
            at(),
        )
        data = award.as_dict()
        assert data["total_points"] == 35
        assert data["bonuses"][0]["challenge_version"] == 3
        assert award.__class__.from_dict(data) == award


# ═══════════════════════════════════════════════════════════════════
# ChallengeEvaluator
# ═══════════════════════════════════════════════════════════════════


def evaluate(challenges, purchase=None, activity=None, as_of=None):
    return ChallengeEvaluator.evaluate(
        purchase or Purchase(Decimal("10")),
        activity or CustomerActivity(visits=(as_of or at(),)),
        challenges,
        as_of or at(),
        TZ,
    )


class TestChallengeEvaluator:
    def test_every_type_has_a_handler(self):
        assert set(ChallengeEvaluator._HANDLERS) == set(ChallengeType)

    def test_amount_min(self):
        challenges = [rule(1, "amount_min", {"min_amount": "20"}, 10)]
        assert evaluate(challenges, Purchase(Decimal("19.99"))) == []
        assert len(evaluate(challenges, Purchase(Decimal("20.00")))) == 1

    def test_time_based_inclusive_bounds(self):
        challenges = [rule(1, "time_based", {"start_time": "07:00", "end_time": "09:00"}, 5)]
        assert len(evaluate(challenges, as_of=at(hour=7))) == 1
        assert len(evaluate(challenges, as_of=at(hour=9))) == 1
        assert evaluate(challenges, as_of=at(hour=9, minute=1)) == []

    def test_time_based_uses_merchant_timezone(self):
        challenges = [rule(1, "time_based", {"start_time": "07:00", "end_time": "09:00"}, 5)]
        # 13:30 UTC is 08:30 in Guayaquil
        as_of = datetime(2026, 3, 2, 13, 30, tzinfo=ZoneInfo("UTC"))
        assert len(evaluate(challenges, as_of=as_of)) == 1

    def test_time_based_wraps_midnight(self):
        challenges = [rule(1, "time_based", {"start_time": "22:00", "end_time": "02:00"}, 5)]
        assert len(evaluate(challenges, as_of=at(hour=23, minute=30))) == 1
        assert len(evaluate(challenges, as_of=at(hour=1))) == 1
        assert evaluate(challenges, as_of=at(hour=3)) == []

    def test_category_match_is_case_insensitive(self):
        challenges = [rule(1, "category", {"categories": ["Coffee"]}, 5)]
        assert len(evaluate(challenges, Purchase(Decimal("3"), frozenset({" COFFEE "})))) == 1
        assert evaluate(challenges, Purchase(Decimal("3"), frozenset({"tea"}))) == []

    def test_all_satisfied_challenges_contribute_in_order(self):
        challenges = [
            rule(3, "amount_min", {"min_amount": "5"}, 15),
            rule(2, "amount_min", {"min_amount": "5"}, 5),
            rule(1, "amount_min", {"min_amount": "5"}, 15),
        ]
        assert [b.challenge_id for b in evaluate(challenges)] == [2, 1, 3]

    def test_paused_challenge_skipped(self):
        challenges = [rule(1, "amount_min", {"min_amount": "0"}, 5, is_active=False)]
        assert evaluate(challenges) == []

    def test_validity_window(self):
        challenges = [
            rule(1, "amount_min", {"min_amount": "0"}, 5, starts_at=at(days=1)),
            rule(2, "amount_min", {"min_amount": "0"}, 5, ends_at=at(days=-1)),
            rule(3, "amount_min", {"min_amount": "0"}, 5, starts_at=at(days=-1), ends_at=at(days=1)),
        ]
        assert [b.challenge_id for b in evaluate(challenges)] == [3]

    def test_non_repeatable_completes_once(self):
        challenges = [rule(1, "amount_min", {"min_amount": "0"}, 5, is_repeatable=False)]
        activity = CustomerActivity(
            visits=(at(),),
            completions=(CompletionRecord(1, at(days=-10)),),
        )
        assert evaluate(challenges, activity=activity) == []

    def test_max_completions_per_day(self):
        challenges = [rule(1, "amount_min", {"min_amount": "0"}, 5, max_completions_per_day=1)]
        today = CustomerActivity(visits=(at(),), completions=(CompletionRecord(1, at(hour=8)),))
        yesterday = CustomerActivity(visits=(at(),), completions=(CompletionRecord(1, at(days=-1)),))
        assert evaluate(challenges, activity=today) == []
        assert len(evaluate(challenges, activity=yesterday)) == 1

    def test_max_completions_total(self):
        challenges = [rule(1, "amount_min", {"min_amount": "0"}, 5, max_completions_total=2)]
        activity = CustomerActivity(
            visits=(at(),),
            completions=(CompletionRecord(1, at(days=-3)), CompletionRecord(1, at(days=-2))),
        )
        assert evaluate(challenges, activity=activity) == []


class TestFrequencyChallenge:
    challenges = [rule(1, "frequency", {"visits_required": 3, "period": "weekly"}, 20)]

    def test_bonus_on_third_visit(self):
        as_of = at(days=2)
        activity = CustomerActivity(visits=(at(), at(days=1), as_of))
        bonuses = evaluate(self.challenges, activity=activity, as_of=as_of)
        assert len(bonuses) == 1
        assert bonuses[0].window_start == datetime(2026, 3, 2, tzinfo=TZ)

    def test_no_bonus_on_second_visit(self):
        as_of = at(days=1)
        activity = CustomerActivity(visits=(at(), as_of))
        assert evaluate(self.challenges, activity=activity, as_of=as_of) == []

    def test_no_bonus_on_fourth_visit_same_week(self):
        as_of = at(days=3)
        activity = CustomerActivity(
            visits=(at(), at(days=1), at(days=2), as_of),
            completions=(CompletionRecord(1, at(days=2), window_start=datetime(2026, 3, 2, tzinfo=TZ)),),
        )
        assert evaluate(self.challenges, activity=activity, as_of=as_of) == []

    def test_new_week_new_window(self):
        as_of = at(days=9)
        activity = CustomerActivity(
            visits=(at(), at(days=1), at(days=2), at(days=7), at(days=8), as_of),
            completions=(CompletionRecord(1, at(days=2), window_start=datetime(2026, 3, 2, tzinfo=TZ)),),
        )
        bonuses = evaluate(self.challenges, activity=activity, as_of=as_of)
        assert bonuses[0].window_start == datetime(2026, 3, 9, tzinfo=TZ)

    def test_visits_before_window_do_not_count(self):
        # Sunday, Monday... the week starts Monday
        as_of = at(days=1)
        activity = CustomerActivity(visits=(at(days=-1), at(), as_of))
        assert evaluate(self.challenges, activity=activity, as_of=as_of) == []


class TestPeriods:
    def test_window_starts(self):
        as_of = datetime(2026, 3, 12, 15, 0, tzinfo=TZ)
        assert window_start(as_of, Period.DAILY, TZ) == datetime(2026, 3, 12, tzinfo=TZ)
        assert window_start(as_of, Period.WEEKLY, TZ) == datetime(2026, 3, 9, tzinfo=TZ)
        assert window_start(as_of, Period.MONTHLY, TZ) == datetime(2026, 3, 1, tzinfo=TZ)

    def test_local_day_not_utc_day(self):
        # 02:00 UTC on the 12th is still the 11th in Guayaquil
        as_of = datetime(2026, 3, 12, 2, 0, tzinfo=ZoneInfo("UTC"))
        assert window_start(as_of, Period.DAILY, TZ) == datetime(2026, 3, 11, tzinfo=TZ)


class TestChallengeConfig:
    def test_parse_normalizes(self):
        parsed = parse_challenge_config("frequency", {"visits_required": "3", "period": "monthly"})
        assert parsed == FrequencyConfig(visits_required=3, period=Period.MONTHLY)

    def test_time_config_wraps(self):
        parsed = parse_challenge_config("time_based", {"start_time": "22:00", "end_time": "02:00"})
        assert isinstance(parsed, TimeBasedConfig)
        assert parsed.wraps_midnight

    @pytest.mark.parametrize(
        "challenge_type,data",
        [
            ("amount_min", {}),
            ("amount_min", {"min_amount": "abc"}),
            ("amount_min", {"min_amount": "-1"}),
            ("time_based", {"start_time": "07:00"}),
            ("time_based", {"start_time": "25:00", "end_time": "09:00"}),
            ("frequency", {"visits_required": 0, "period": "weekly"}),
            ("frequency", {"visits_required": 3, "period": "yearly"}),
            ("category", {"categories": []}),
            ("birthday", {}),
        ],
    )
    def test_invalid_config(self, challenge_type, data):
        with pytest.raises(RewardmanError) as exc:
            parse_challenge_config(challenge_type, data)
        assert exc.value.code == "INVALID_CHALLENGE_CONFIG"


# ═══════════════════════════════════════════════════════════════════
# Gift card thresholds
# ═══════════════════════════════════════════════════════════════════


class TestThresholds:
    def test_single_crossing(self):
        assert cards_to_issue(95, 105, 100) == 1

    def test_multiple_crossings_in_one_award(self):
        assert cards_to_issue(95, 205, 100) == 2

    def test_landing_exactly_on_threshold(self):
        assert cards_to_issue(80, 100, 100) == 1

    def test_no_crossing(self):
        assert cards_to_issue(10, 99, 100) == 0

    def test_decrease_issues_nothing(self):
        assert cards_to_issue(205, 95, 100) == 0

    def test_disabled_threshold(self):
        assert cards_to_issue(0, 500, 0) == 0

    def test_missing_sequences(self):
        assert missing_sequences(350, 100, {1, 3}) == [2]
        assert missing_sequences(99, 100, set()) == []
