from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from .common import OpType
from .stake import StakeRecord
from .governance import Proposal

class Operation(BaseModel):
    """
    Request envelope for a single engine operation.

    Per-type inputs that do not fit `amount` travel in `payload`:
      STAKE_WITH_LOCK:      {"lock_period": int}
      STAKE_DUAL:           {"secondary_amount": int}
      EXECUTE_TRADE:        {"execution_latency_ms": int}
      CLAIM_REWARDS:        {"liquidity_provided": int}
      TOGGLE_AUTO_RESTAKE:  {"enabled": bool}
      CREATE_PROPOSAL:      {"description": str}
      VOTE_PROPOSAL:        {"proposal_id": int, "support": bool}
      SLASH_STAKE:          {"target": str, "percentage": int}
    """
    op_type: OpType
    owner: str                 # Caller identity (already authenticated upstream)
    amount: int = 0            # in base units
    payload: Dict[str, Any] = Field(default_factory=dict)

class TradeQuote(BaseModel):
    """Advisory fee-schedule output of execute_trade."""
    staking_duration: int
    fee_discount: int
    vip_multiplier: int
    duration_priority_bonus: int
    institutional_bonus: int
    latency_bonus: int
    latency_tier: str
    adjusted_fee_discount: int
    airdrop: int = 0

class RewardBreakdown(BaseModel):
    months: int
    base_reward: int
    lp_boost: int
    total: int
    compounded: bool = False

class OperationResult(BaseModel):
    op_type: OpType
    owner: str
    record: Optional[StakeRecord] = None
    transferred: int = 0       # Amount actually moved by the transfer service
    penalty: int = 0           # Withheld early-exit penalty
    quote: Optional[TradeQuote] = None
    reward: Optional[RewardBreakdown] = None
    voting_power: Optional[int] = None
    proposal: Optional[Proposal] = None
    insurance_balance: Optional[int] = None
