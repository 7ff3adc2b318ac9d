# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports staking engine metrics in Prometheus format.

Metrics:
- Operations applied / failed by type and error code
- Early-exit penalties, airdrops, slashing
- Staked, borrowed and LP totals
- Governance and insurance fund
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

from protocol.types.common import OpType

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# OPERATION METRICS
# ═══════════════════════════════════════════════════════════════════

operations_total = Counter(
    'sst_operations_total',
    'Total number of operations applied',
    ['op_type'],
    registry=metrics_registry
)

operation_failures_total = Counter(
    'sst_operation_failures_total',
    'Total number of rejected operations',
    ['op_type', 'code'],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# INCENTIVE & RISK METRICS
# ═══════════════════════════════════════════════════════════════════

penalties_withheld_total = Counter(
    'sst_penalties_withheld_total',
    'Tokens withheld by early unstake penalties',
    registry=metrics_registry
)

airdrops_total = Counter(
    'sst_execution_airdrops_total',
    'Tokens credited by execution bonus airdrops',
    registry=metrics_registry
)

rewards_paid_total = Counter(
    'sst_rewards_paid_total',
    'Reward tokens paid out or compounded',
    ['mode'],
    registry=metrics_registry
)

slashed_total = Counter(
    'sst_slashed_total',
    'Tokens removed from stakes by governance slashing',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# LEDGER METRICS
# ═══════════════════════════════════════════════════════════════════

stake_records = Gauge(
    'sst_stake_records',
    'Number of stake records',
    registry=metrics_registry
)

total_staked = Gauge(
    'sst_total_staked',
    'Total primary asset staked',
    registry=metrics_registry
)

total_secondary_staked = Gauge(
    'sst_total_secondary_staked',
    'Total secondary asset staked',
    registry=metrics_registry
)

total_lp_deposited = Gauge(
    'sst_total_lp_deposited',
    'Total LP tokens deposited',
    registry=metrics_registry
)

total_borrowed = Gauge(
    'sst_total_borrowed',
    'Total obligations recorded against stakes',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# GOVERNANCE & INSURANCE
# ═══════════════════════════════════════════════════════════════════

proposals_total = Gauge(
    'sst_proposals_total',
    'Number of governance proposals',
    registry=metrics_registry
)

insurance_balance = Gauge(
    'sst_insurance_balance',
    'Insurance fund balance',
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def record_operation(result):
    """
    Update counters for an applied operation.

    Args:
        result: OperationResult returned by EngineState.apply_operation
    """
    operations_total.labels(op_type=result.op_type.name).inc()

    if result.penalty and result.op_type == OpType.UNSTAKE:
        penalties_withheld_total.inc(result.penalty)
    if result.quote and result.quote.airdrop:
        airdrops_total.inc(result.quote.airdrop)
    if result.reward:
        mode = "compounded" if result.reward.compounded else "transferred"
        rewards_paid_total.labels(mode=mode).inc(result.reward.total)


def record_failure(op_type, code):
    operation_failures_total.labels(op_type=op_type.name, code=code.value).inc()


def record_slash(amount: int):
    slashed_total.inc(amount)


def update_metrics(state):
    """
    Update all gauges from engine state.
    Called after operations and when metrics are scraped.

    Args:
        state: EngineState instance
    """
    records = state.get_all_records()
    stake_records.set(len(records))
    total_staked.set(sum(r.amount for r in records))
    total_secondary_staked.set(sum(r.secondary_amount for r in records))
    total_lp_deposited.set(sum(r.lp_deposit for r in records))
    total_borrowed.set(sum(r.borrowed_amount for r in records))

    proposals_total.set(state.proposal_count)
    insurance_balance.set(state.get_insurance_fund().balance)
