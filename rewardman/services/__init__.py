"""Rewardman services.

Leaf-first:
- tiers: pure balance -> tier classification
- projection: fold ledger into balance/lifetime totals
- ledger: append-only store, the only writer
- catalog: reward catalog backend and availability
- earning: earn events, booking earn, manual adjustments
- redemption: catalog reward -> redeem entry
- expiration: periodic sweep of aged earn entries
"""

from rewardman.services import tiers
from rewardman.services import projection
from rewardman.services import ledger
from rewardman.services import catalog
from rewardman.services import earning
from rewardman.services import redemption
from rewardman.services import expiration

__all__ = ["tiers", "projection", "ledger", "catalog", "earning", "redemption", "expiration"]
