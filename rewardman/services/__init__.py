"""Rewardman services.

- ledger: RewardLedger (append-only ledger, balance projection)
- points: PointsService (POS purchase -> award -> ledger)
- gift_cards: GiftCardIssuer, GiftCardLifecycle
- challenges: ChallengeService (merchant bonus rules)
- checkins: CheckinService (customers and visits)
- notifications: after-commit notification dispatch
"""
