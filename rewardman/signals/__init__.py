"""
Rewardman signals - public event API.

All signals are sent after the surrounding transaction commits.

Emitted signals:
- points_awarded: Emitted by PointsService.award_purchase() (sender=LedgerEntry, entry, award)
- ledger_entry_appended: Emitted by RewardLedger.append() (sender=LedgerEntry, entry)
- gift_card_issued: Emitted by GiftCardIssuer (sender=GiftCard, gift_card)
- gift_card_redeemed: Emitted by GiftCardLifecycle.redeem() (sender=GiftCard, gift_card)
- gift_card_expired: Emitted on lazy or batch expiry (sender=GiftCard, gift_card)
"""

from django.dispatch import Signal

points_awarded = Signal()
ledger_entry_appended = Signal()
gift_card_issued = Signal()
gift_card_redeemed = Signal()
gift_card_expired = Signal()
