"""
Stake ledger.

Deposit, lock and withdrawal rules for a single StakeRecord. Every method
validates and computes with checked arithmetic before the transfer service is
called, so a failing operation leaves the record and custody balances as they
were.
"""
from contextlib import contextmanager
from typing import Tuple
import logging

from protocol.config.economic_model import ECONOMIC_CONFIG, IncentiveConfig
from protocol.config.params import PRIMARY_ASSET, SECONDARY_ASSET, LP_ASSET, VAULT_ACCOUNT
from protocol.types.common import EngineError, ErrorCode
from protocol.types.stake import StakeRecord
from .checked import checked_add, checked_sub, checked_mul, checked_add_i64, require_positive
from .transfer import AssetTransferService

logger = logging.getLogger(__name__)


class StakeLedger:
    def __init__(self, transfers: AssetTransferService, clock, config: IncentiveConfig = ECONOMIC_CONFIG):
        self.transfers = transfers
        self.clock = clock
        self.config = config

    @contextmanager
    def reentrancy_guard(self, record: StakeRecord):
        """Holds the record's guard for the duration of a deposit."""
        if record.reentrancy_guard:
            raise EngineError(ErrorCode.REENTRANCY_DETECTED, f"owner={record.owner}")
        record.reentrancy_guard = True
        try:
            yield record
        finally:
            record.reentrancy_guard = False

    # --- Deposits ---

    def deposit(self, record: StakeRecord, amount: int, lock_period: int = 0) -> StakeRecord:
        require_positive(amount)
        if not self.config.is_valid_lock_period(lock_period):
            raise EngineError(ErrorCode.INVALID_LOCK_PERIOD, f"lock_period={lock_period}")

        with self.reentrancy_guard(record):
            now = self.clock.now()
            checked_add(record.amount, amount)
            locked_until = checked_add_i64(now, lock_period)

            self.transfers.transfer(PRIMARY_ASSET, record.owner, VAULT_ACCOUNT, amount)

            record.amount = checked_add(record.amount, amount)
            self._reset_terms(record, now, lock_period, locked_until)

        logger.info(f"Staked {amount} for {record.owner} (lock_period={lock_period}, total={record.amount})")
        return record

    def deposit_dual(self, record: StakeRecord, primary_amount: int, secondary_amount: int,
                     lock_period: int = 0) -> StakeRecord:
        require_positive(primary_amount, "primary_amount")
        require_positive(secondary_amount, "secondary_amount")
        if not self.config.is_valid_lock_period(lock_period):
            raise EngineError(ErrorCode.INVALID_LOCK_PERIOD, f"lock_period={lock_period}")

        with self.reentrancy_guard(record):
            now = self.clock.now()
            checked_add(record.amount, primary_amount)
            checked_add(record.secondary_amount, secondary_amount)
            locked_until = checked_add_i64(now, lock_period)

            self.transfers.transfer(PRIMARY_ASSET, record.owner, VAULT_ACCOUNT, primary_amount)
            try:
                self.transfers.transfer(SECONDARY_ASSET, record.owner, VAULT_ACCOUNT, secondary_amount)
            except Exception:
                # Both legs or neither
                self.transfers.transfer(PRIMARY_ASSET, VAULT_ACCOUNT, record.owner, primary_amount)
                raise

            record.amount = checked_add(record.amount, primary_amount)
            record.secondary_amount = checked_add(record.secondary_amount, secondary_amount)
            self._reset_terms(record, now, lock_period, locked_until)

        logger.info(
            f"Dual-staked {primary_amount} {PRIMARY_ASSET} + {secondary_amount} {SECONDARY_ASSET} "
            f"for {record.owner}"
        )
        return record

    def deposit_lp(self, record: StakeRecord, lp_amount: int) -> StakeRecord:
        require_positive(lp_amount, "lp_amount")

        with self.reentrancy_guard(record):
            checked_add(record.lp_deposit, lp_amount)
            self.transfers.transfer(LP_ASSET, record.owner, VAULT_ACCOUNT, lp_amount)
            record.lp_deposit = checked_add(record.lp_deposit, lp_amount)
            # A record opened by an LP deposit starts its clock here, not at the epoch
            if record.last_staked_time == 0:
                record.last_staked_time = self.clock.now()

        logger.info(f"Deposited {lp_amount} {LP_ASSET} for {record.owner} (total={record.lp_deposit})")
        return record

    def _reset_terms(self, record: StakeRecord, now: int, lock_period: int, locked_until: int):
        record.last_staked_time = now
        record.lock_period = lock_period
        record.locked_until = locked_until
        record.borrowed_amount = 0
        record.auto_restake = False

    # --- Withdrawals ---

    def unlocked_amount(self, record: StakeRecord) -> int:
        """
        Portion of a locked stake that can be withdrawn now.

        Vests linearly from the last deposit and reaches the full stake at
        `lock_period`. Flexible stakes are fully unlocked.
        """
        if not record.is_locked:
            return record.amount
        elapsed = self.clock.now() - record.last_staked_time
        if elapsed < 0:
            raise EngineError(ErrorCode.UNDERFLOW, "clock is behind last_staked_time")
        if elapsed >= record.lock_period:
            return record.amount
        return record.amount * elapsed // record.lock_period

    def early_exit_penalty(self, record: StakeRecord, amount: int) -> int:
        """Withheld part of a flexible withdrawal made before the minimum duration."""
        if record.is_locked:
            return 0
        if self.clock.now() - record.last_staked_time >= self.config.min_flexible_stake_duration:
            return 0
        return checked_mul(amount, self.config.early_exit_penalty_pct) // 100

    def withdraw(self, record: StakeRecord, amount: int) -> Tuple[int, int]:
        """
        Withdraws `amount` from the stake.

        Returns (transferred, penalty). The record is debited the full amount;
        the penalty stays in the vault.
        """
        if amount > record.amount:
            raise EngineError(
                ErrorCode.INSUFFICIENT_STAKED_AMOUNT,
                f"staked {record.amount}, requested {amount}"
            )
        require_positive(amount)

        if record.is_locked:
            unlocked = self.unlocked_amount(record)
            if amount > unlocked:
                raise EngineError(ErrorCode.TOKENS_LOCKED, f"unlocked {unlocked}, requested {amount}")
            penalty = 0
        else:
            penalty = self.early_exit_penalty(record, amount)

        remaining = checked_sub(record.amount, amount)
        if record.borrowed_amount > remaining // self.config.borrow_collateral_divisor:
            raise EngineError(
                ErrorCode.BORROW_LIMIT_EXCEEDED,
                f"outstanding borrow {record.borrowed_amount} needs collateral above {remaining}"
            )

        transferred = checked_sub(amount, penalty)
        self.transfers.transfer(PRIMARY_ASSET, VAULT_ACCOUNT, record.owner, transferred)
        record.amount = checked_sub(record.amount, amount)

        if penalty:
            logger.info(f"Early unstake penalty applied: {penalty} tokens withheld from {record.owner}")
        logger.info(f"Unstaked {amount} for {record.owner} (transferred={transferred}, remaining={record.amount})")
        return transferred, penalty

    # --- Balance adjustments ---

    def credit(self, record: StakeRecord, amount: int) -> StakeRecord:
        """Adds engine-issued tokens (airdrops, compounded rewards) to the stake."""
        record.amount = checked_add(record.amount, amount)
        return record

    def toggle_auto_restake(self, record: StakeRecord, enabled: bool) -> StakeRecord:
        record.auto_restake = bool(enabled)
        logger.info(f"Auto-restake for {record.owner} toggled to: {record.auto_restake}")
        return record
