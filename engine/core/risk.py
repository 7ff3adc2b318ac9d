"""
Risk controls: governance slashing and the insurance fund.

`slash_stake` is unconditional; the caller's governance capability must be
checked before it runs (see engine/rpc/api.py).
"""
import logging

from protocol.config.params import PRIMARY_ASSET, INSURANCE_VAULT_ACCOUNT
from protocol.types.governance import InsuranceFund
from protocol.types.stake import StakeRecord
from .checked import checked_add, checked_sub, checked_mul, require_u64, require_positive
from .transfer import AssetTransferService

logger = logging.getLogger(__name__)


def slash_amount(staked_amount: int, percentage: int) -> int:
    return checked_mul(staked_amount, percentage) // 100


def slash_stake(record: StakeRecord, percentage: int) -> int:
    """Reduces the stake by `percentage` percent. Returns the slashed quantity."""
    require_u64(percentage, "percentage")
    slashed = slash_amount(record.amount, percentage)
    record.amount = checked_sub(record.amount, slashed)
    logger.warning(f"Slashed {slashed} ({percentage}%) from {record.owner}, remaining={record.amount}")
    return slashed


def donate_insurance(fund: InsuranceFund, transfers: AssetTransferService, donor: str, amount: int) -> InsuranceFund:
    require_positive(amount)
    new_balance = checked_add(fund.balance, amount)
    transfers.transfer(PRIMARY_ASSET, donor, INSURANCE_VAULT_ACCOUNT, amount)
    fund.balance = new_balance
    logger.info(f"Insurance donation of {amount} from {donor} (fund balance={fund.balance})")
    return fund
