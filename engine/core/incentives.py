"""
Incentive calculator.

Pure functions deriving fee discounts, VIP multipliers, rewards and voting
power from ledger state. No function here touches a record; callers apply
the results.
"""
import logging

from protocol.config.economic_model import ECONOMIC_CONFIG, IncentiveConfig
from protocol.config.params import U64_MAX
from protocol.types.operation import TradeQuote, RewardBreakdown
from .checked import checked_add, checked_mul

logger = logging.getLogger(__name__)

LATENCY_ULTRA_FAST = "ultra_fast"
LATENCY_FAST = "fast"
LATENCY_STANDARD = "standard"


def staking_duration(now: int, last_staked_time: int) -> int:
    """Elapsed stake time, clamped at zero when the clock is behind the record."""
    return max(now - last_staked_time, 0)


def vip_multiplier(staked_amount: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> int:
    """Staircase multiplier (percent) over absolute stake size."""
    for threshold, multiplier in config.vip_tiers:
        if staked_amount >= threshold:
            return multiplier
    return config.vip_base_multiplier


def fee_discount(staked_amount: int, duration: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> int:
    """
    Base fee discount for a locked stake.

    1% per `fee_discount_divisor` base units plus 1% per complete month,
    capped at `fee_discount_cap`.
    """
    base = staked_amount // config.fee_discount_divisor
    return min(base + config.complete_periods(duration), config.fee_discount_cap)


def duration_priority_bonus(duration: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> int:
    for min_duration, bonus in config.duration_bonus_tiers:
        if duration >= min_duration:
            return bonus
    return 0


def latency_tier(execution_latency_ms: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> str:
    if execution_latency_ms <= config.ultra_fast_latency_ms:
        return LATENCY_ULTRA_FAST
    if execution_latency_ms <= config.fast_latency_ms:
        return LATENCY_FAST
    return LATENCY_STANDARD


def execution_airdrop(execution_latency_ms: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> int:
    """Stake credit earned by a trade; only the ultra-fast tier pays."""
    if latency_tier(execution_latency_ms, config) == LATENCY_ULTRA_FAST:
        return config.execution_airdrop
    return 0


def adjusted_fee_discount(staked_amount: int,
                          duration: int,
                          execution_latency_ms: int,
                          is_locked: bool = True,
                          config: IncentiveConfig = ECONOMIC_CONFIG) -> TradeQuote:
    """
    Advisory fee discount for a trade, with its components.

    The discount is an input for an external fee schedule; the only ledger
    effect of a trade is the airdrop reported in the quote.
    """
    base = fee_discount(staked_amount, duration, config) if is_locked else 0
    vip = vip_multiplier(staked_amount, config)
    adjusted = base * vip // 100

    duration_bonus = duration_priority_bonus(duration, config)
    adjusted = checked_add(adjusted, duration_bonus)

    institutional = config.institutional_bonus if staked_amount >= config.institutional_threshold else 0
    adjusted = checked_add(adjusted, institutional)

    tier = latency_tier(execution_latency_ms, config)
    latency_bonus = config.latency_bonus if tier == LATENCY_ULTRA_FAST else 0
    adjusted = checked_add(adjusted, latency_bonus)

    logger.debug(
        f"Fee discount: base={base}% vip={vip}% duration_bonus={duration_bonus}% "
        f"institutional={institutional}% latency={tier} -> {adjusted}%"
    )

    return TradeQuote(
        staking_duration=duration,
        fee_discount=base,
        vip_multiplier=vip,
        duration_priority_bonus=duration_bonus,
        institutional_bonus=institutional,
        latency_bonus=latency_bonus,
        latency_tier=tier,
        adjusted_fee_discount=adjusted,
        airdrop=execution_airdrop(execution_latency_ms, config),
    )


def lp_reward_boost(liquidity_provided: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> int:
    return min(liquidity_provided // config.lp_boost_divisor, config.lp_boost_cap)


def reward_for_period(duration: int, liquidity_provided: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> RewardBreakdown:
    """Progressive reward: base + monthly bonus + capped LP boost."""
    months = config.complete_periods(duration)
    progressive_bonus = checked_mul(months, config.monthly_reward_bonus)
    base_reward = checked_add(config.base_reward, progressive_bonus)
    lp_boost = lp_reward_boost(liquidity_provided, config)
    total = checked_add(base_reward, lp_boost)
    return RewardBreakdown(months=months, base_reward=base_reward, lp_boost=lp_boost, total=total)


def voting_power(staked_amount: int, duration: int, config: IncentiveConfig = ECONOMIC_CONFIG) -> int:
    """
    Stake plus 1% per complete month staked.

    Never fails: if the bonus cannot be represented the raw stake is returned.
    """
    months = config.complete_periods(duration)
    weighted = staked_amount * months * config.voting_bonus_pct_per_month
    if weighted > U64_MAX:
        return staked_amount
    power = staked_amount + weighted // 100
    if power > U64_MAX:
        return staked_amount
    return power
