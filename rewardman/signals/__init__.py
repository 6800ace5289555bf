"""
Rewardman signals: public event API.

Emitted signals (all with sender=LedgerEntry unless noted):
- points_earned: entry, account, balance (emitted once per new earn entry)
- points_redeemed: entry, account, balance, reward
- points_expired: entry, account, balance
- points_adjusted: entry, account, balance
- tier_changed: sender=LoyaltyAccount, account, previous, current
"""

from django.dispatch import Signal

# Ledger signals (emitted by services after the append commits)
points_earned = Signal()
points_redeemed = Signal()
points_expired = Signal()
points_adjusted = Signal()

# Tier signal (emitted when an append moves the balance across a boundary)
tier_changed = Signal()
