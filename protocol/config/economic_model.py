# MIT License
# Copyright (c) 2025 Hashborn

"""
SST Incentive Model
Single source of truth for all incentive parameters.

Amounts are in base units (6 decimals); durations are in seconds.
Penalties and slashed stake are not burned: they stay in the vault.
"""

from dataclasses import dataclass, field
from typing import Tuple

from .params import UNIT

DAY = 24 * 60 * 60
MONTH = 30 * DAY

@dataclass
class IncentiveConfig:
    """Incentive parameters for a network."""

    # ═══════════════════════════════════════════════════════
    # LOCKS & EARLY EXIT
    # ═══════════════════════════════════════════════════════
    allowed_lock_periods: Tuple[int, ...]   # Lock durations accepted by stake_with_lock
    min_flexible_stake_duration: int        # Flexible stake younger than this pays the penalty
    early_exit_penalty_pct: int             # % of the withdrawal withheld

    # ═══════════════════════════════════════════════════════
    # FEE DISCOUNTS
    # ═══════════════════════════════════════════════════════
    fee_discount_divisor: int               # staked / divisor = base discount
    fee_discount_cap: int                   # Max base discount (percent)
    vip_tiers: Tuple[Tuple[int, int], ...]  # (min stake, multiplier %), descending
    vip_base_multiplier: int                # Multiplier below the lowest tier
    duration_bonus_tiers: Tuple[Tuple[int, int], ...]  # (min duration, bonus), descending
    institutional_threshold: int            # Stake that earns the institutional boost
    institutional_bonus: int

    # ═══════════════════════════════════════════════════════
    # EXECUTION INCENTIVES
    # ═══════════════════════════════════════════════════════
    ultra_fast_latency_ms: int              # <= this earns the latency bonus + airdrop
    fast_latency_ms: int                    # <= this is reported, no credit
    latency_bonus: int
    execution_airdrop: int                  # Credited straight to the stake

    # ═══════════════════════════════════════════════════════
    # REWARDS
    # ═══════════════════════════════════════════════════════
    base_reward: int
    monthly_reward_bonus: int               # Added per complete month staked
    lp_boost_divisor: int                   # liquidity / divisor = boost
    lp_boost_cap: int

    # ═══════════════════════════════════════════════════════
    # GOVERNANCE & LENDING
    # ═══════════════════════════════════════════════════════
    voting_bonus_pct_per_month: int         # % of stake added per complete month
    borrow_collateral_divisor: int          # max borrow = stake / divisor

    period: int = field(default=MONTH)      # Length of the "month" used by every formula

    # ═══════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════

    def is_valid_lock_period(self, lock_period: int) -> bool:
        return lock_period == 0 or lock_period in self.allowed_lock_periods

    def complete_periods(self, duration: int) -> int:
        """Number of complete periods in a non-negative duration."""
        return max(duration, 0) // self.period


DEFAULT = IncentiveConfig(
    # Locks
    allowed_lock_periods=(30 * DAY, 90 * DAY, 180 * DAY),
    min_flexible_stake_duration=7 * DAY,
    early_exit_penalty_pct=2,                    # 2% withheld

    # Fee discounts
    fee_discount_divisor=1000,                   # 1000 base units = 1%
    fee_discount_cap=50,                         # 50% max
    vip_tiers=(
        (10_000 * UNIT, 130),                    # 1.30x
        (5_000 * UNIT, 115),                     # 1.15x
        (1_000 * UNIT, 105),                     # 1.05x
    ),
    vip_base_multiplier=100,
    duration_bonus_tiers=(
        (180 * DAY, 5),
        (90 * DAY, 3),
        (30 * DAY, 1),
    ),
    institutional_threshold=100_000 * UNIT,      # 100k SST
    institutional_bonus=10,

    # Execution
    ultra_fast_latency_ms=50,
    fast_latency_ms=100,
    latency_bonus=5,
    execution_airdrop=20,

    # Rewards
    base_reward=100,
    monthly_reward_bonus=10,
    lp_boost_divisor=10_000,
    lp_boost_cap=20,

    # Governance & lending
    voting_bonus_pct_per_month=1,                # +1% per month
    borrow_collateral_divisor=2,                 # 50% of stake
)


# ═══════════════════════════════════════════════════════════════════════════
# CURRENT MODEL (selected at runtime)
# ═══════════════════════════════════════════════════════════════════════════
ECONOMIC_CONFIG = DEFAULT
