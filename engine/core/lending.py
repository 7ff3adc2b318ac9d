"""
Borrowing against stake.

Both operations cap the outstanding obligation at half of the stake. `borrow`
only records the obligation; `flash_loan` also pays the amount out of the
vault. Neither enforces repayment.
"""
import logging

from protocol.config.economic_model import ECONOMIC_CONFIG, IncentiveConfig
from protocol.config.params import PRIMARY_ASSET, VAULT_ACCOUNT
from protocol.types.common import EngineError, ErrorCode
from protocol.types.stake import StakeRecord
from .checked import checked_add, require_positive
from .transfer import AssetTransferService

logger = logging.getLogger(__name__)


class LendingController:
    def __init__(self, transfers: AssetTransferService, config: IncentiveConfig = ECONOMIC_CONFIG):
        self.transfers = transfers
        self.config = config

    def max_borrow(self, record: StakeRecord) -> int:
        return record.amount // self.config.borrow_collateral_divisor

    def available_to_borrow(self, record: StakeRecord) -> int:
        return max(self.max_borrow(record) - record.borrowed_amount, 0)

    def _check_limit(self, record: StakeRecord, amount: int) -> int:
        require_positive(amount)
        new_borrowed = checked_add(record.borrowed_amount, amount)
        limit = self.max_borrow(record)
        if new_borrowed > limit:
            raise EngineError(
                ErrorCode.BORROW_LIMIT_EXCEEDED,
                f"limit {limit}, outstanding {record.borrowed_amount}, requested {amount}"
            )
        return new_borrowed

    def borrow(self, record: StakeRecord, amount: int) -> StakeRecord:
        record.borrowed_amount = self._check_limit(record, amount)
        logger.info(f"Borrowed {amount} tokens against stake of {record.owner}")
        return record

    def flash_loan(self, record: StakeRecord, amount: int) -> StakeRecord:
        new_borrowed = self._check_limit(record, amount)
        self.transfers.transfer(PRIMARY_ASSET, VAULT_ACCOUNT, record.owner, amount)
        record.borrowed_amount = new_borrowed
        logger.info(f"Flash loan of {amount} tokens paid out to {record.owner}")
        return record
