from typing import Dict, Optional, List, Tuple, Callable
import json
import logging
import os
import threading

from protocol.config.economic_model import ECONOMIC_CONFIG, IncentiveConfig
from protocol.config.params import PRIMARY_ASSET, REWARD_VAULT_ACCOUNT
from protocol.types.common import OpType, EngineError, ErrorCode
from protocol.types.governance import Proposal, InsuranceFund
from protocol.types.operation import Operation, OperationResult
from protocol.types.stake import StakeRecord
from ..observability import metrics
from ..storage.db import StorageDB
from . import governance, incentives, risk
from .checked import require_u64
from .clock import SystemClock
from .events import EventBus, event_bus, OPERATION_APPLIED, OPERATION_FAILED
from .ledger import StakeLedger
from .lending import LendingController
from .transfer import AssetTransferService, InMemoryTransferService

logger = logging.getLogger(__name__)


class EngineState:
    def __init__(self,
                 db: StorageDB,
                 transfers: Optional[AssetTransferService] = None,
                 clock=None,
                 config: IncentiveConfig = ECONOMIC_CONFIG,
                 events: EventBus = event_bus,
                 track_metrics: bool = True):
        self.db = db
        self.transfers = transfers if transfers is not None else self._load_custody(db)
        self.clock = clock if clock is not None else SystemClock()
        self.config = config
        self.events = events
        self.track_metrics = track_metrics

        # Cache for modified/accessed records
        self._records: Dict[str, StakeRecord] = {}
        self._proposals: Dict[int, Proposal] = {}
        self._insurance: Optional[InsuranceFund] = None

        self.proposal_count = 0
        self._load_counters()

        self.ledger = StakeLedger(self.transfers, self.clock, config)
        self.lending = LendingController(self.transfers, config)

        # Serializes operations; reentrant so a transfer callback reaches the record guard
        self._lock = threading.RLock()

        self._handlers: Dict[OpType, Callable[[Operation], OperationResult]] = {
            OpType.STAKE: self._apply_stake,
            OpType.STAKE_WITH_LOCK: self._apply_stake_with_lock,
            OpType.STAKE_DUAL: self._apply_stake_dual,
            OpType.DEPOSIT_LP: self._apply_deposit_lp,
            OpType.UNSTAKE: self._apply_unstake,
            OpType.EXECUTE_TRADE: self._apply_execute_trade,
            OpType.CLAIM_REWARDS: self._apply_claim_rewards,
            OpType.TOGGLE_AUTO_RESTAKE: self._apply_toggle_auto_restake,
            OpType.BORROW: self._apply_borrow,
            OpType.FLASH_LOAN: self._apply_flash_loan,
            OpType.CREATE_PROPOSAL: self._apply_create_proposal,
            OpType.VOTE_PROPOSAL: self._apply_vote_proposal,
            OpType.SLASH_STAKE: self._apply_slash_stake,
            OpType.DONATE_INSURANCE: self._apply_donate_insurance,
        }

    @staticmethod
    def _load_custody(db: StorageDB) -> InMemoryTransferService:
        balances = {}
        for key, value in db.get_state_by_prefix("custody:").items():
            _, asset, account = key.split(":", 2)
            balances[(asset, account)] = int(value)
        return InMemoryTransferService(balances)

    def _load_counters(self):
        val = self.db.get_state("proposal_count")
        if val:
            self.proposal_count = int(val)

    def clone(self) -> 'EngineState':
        """Creates a copy of the state (for simulation)."""
        if not isinstance(self.transfers, InMemoryTransferService):
            raise ValueError("Simulation requires an in-memory custody book")
        cloned = EngineState(
            self.db,
            transfers=InMemoryTransferService(self.transfers.items()),
            clock=self.clock,
            config=self.config,
            events=EventBus(),
            track_metrics=False,
        )
        cloned._records = {k: v.model_copy() for k, v in self._records.items()}
        cloned._proposals = {k: v.model_copy() for k, v in self._proposals.items()}
        cloned._insurance = self._insurance.model_copy() if self._insurance else None
        cloned.proposal_count = self.proposal_count
        return cloned

    # --- Records ---

    def has_record(self, owner: str) -> bool:
        return owner in self._records or self.db.get_state(f"stake:{owner}") is not None

    def get_record(self, owner: str) -> StakeRecord:
        if owner in self._records:
            return self._records[owner]

        # Try load from DB
        raw_json = self.db.get_state(f"stake:{owner}")
        if raw_json:
            record = StakeRecord.model_validate_json(raw_json)
            self._records[owner] = record
            return record

        # Return zero-initialized record
        return StakeRecord(owner=owner)

    def set_record(self, record: StakeRecord):
        """Updates record in local cache."""
        self._records[record.owner] = record

    def get_all_records(self) -> List[StakeRecord]:
        """Loads all records from DB + cache overlay."""
        final_records = {}
        for k, v in self.db.get_state_by_prefix("stake:").items():
            owner = k.split(":", 1)[1]
            final_records[owner] = StakeRecord.model_validate_json(v)

        for owner, record in self._records.items():
            final_records[owner] = record

        return list(final_records.values())

    def _require_record(self, owner: str) -> StakeRecord:
        if not self.has_record(owner):
            raise EngineError(ErrorCode.STAKE_NOT_FOUND, f"owner={owner}")
        return self.get_record(owner)

    # --- Governance / insurance records ---

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        if proposal_id in self._proposals:
            return self._proposals[proposal_id]

        raw_json = self.db.get_state(f"proposal:{proposal_id}")
        if raw_json:
            proposal = Proposal.model_validate_json(raw_json)
            self._proposals[proposal_id] = proposal
            return proposal
        return None

    def get_all_proposals(self) -> List[Proposal]:
        final_proposals = {}
        for k, v in self.db.get_state_by_prefix("proposal:").items():
            proposal = Proposal.model_validate_json(v)
            final_proposals[proposal.proposal_id] = proposal

        for pid, proposal in self._proposals.items():
            final_proposals[pid] = proposal

        return [final_proposals[pid] for pid in sorted(final_proposals)]

    def get_insurance_fund(self) -> InsuranceFund:
        if self._insurance is None:
            raw_json = self.db.get_state("insurance")
            self._insurance = InsuranceFund.model_validate_json(raw_json) if raw_json else InsuranceFund()
        return self._insurance

    # --- Derived views ---

    def staking_duration(self, record: StakeRecord) -> int:
        return incentives.staking_duration(self.clock.now(), record.last_staked_time)

    def unlocked_amount(self, owner: str) -> int:
        return self.ledger.unlocked_amount(self.get_record(owner))

    def voting_power(self, owner: str) -> int:
        record = self.get_record(owner)
        return incentives.voting_power(record.amount, self.staking_duration(record), self.config)

    # --- Persistence ---

    def persist(self):
        """Writes cached records and the custody book to DB."""
        items = {}
        for owner, record in self._records.items():
            items[f"stake:{owner}"] = record.model_dump_json()
        for pid, proposal in self._proposals.items():
            items[f"proposal:{pid}"] = proposal.model_dump_json()
        if self._insurance is not None:
            items["insurance"] = self._insurance.model_dump_json()
        items["proposal_count"] = str(self.proposal_count)

        if isinstance(self.transfers, InMemoryTransferService):
            for (asset, account), balance in self.transfers.items().items():
                items[f"custody:{asset}:{account}"] = str(balance)

        self.db.set_many(items)

    def apply_genesis(self, genesis_path: str) -> int:
        """
        Loads initial custody balances from genesis.json if the book is empty.

        Format: {"custody": {"<asset>": {"<account>": amount}}}
        """
        if not os.path.exists(genesis_path):
            logger.warning("No genesis.json found. Starting with empty custody book.")
            return 0
        if not isinstance(self.transfers, InMemoryTransferService) or self.transfers.items():
            return 0

        with open(genesis_path, "r") as f:
            data = json.load(f)

        count = 0
        for asset, accounts in data.get("custody", {}).items():
            for account, amount in accounts.items():
                self.transfers.mint(asset, account, int(amount))
                count += 1

        self.persist()
        logger.info(f"Applied genesis allocation to {count} custody accounts.")
        return count

    # --- Operations ---

    def apply_operation(self, op: Operation) -> OperationResult:
        """
        Applies one operation atomically. Raises EngineError on failure, in
        which case no record or custody balance has changed.
        """
        handler = self._handlers.get(op.op_type)
        if handler is None:
            raise ValueError(f"Unsupported operation type: {op.op_type}")

        with self._lock:
            try:
                result = handler(op)
            except EngineError as e:
                logger.warning(f"{op.op_type.value} by {op.owner} rejected: [{e.code.value}] {e}")
                if self.track_metrics:
                    metrics.record_failure(op.op_type, e.code)
                self.events.emit(OPERATION_FAILED, op=op, error=e)
                raise

        if self.track_metrics:
            metrics.record_operation(result)
        self.events.emit(OPERATION_APPLIED, op=op, result=result)
        return result

    def simulate(self, op: Operation) -> OperationResult:
        """Applies an operation to a throwaway copy of the state."""
        return self.clone().apply_operation(op)

    # --- Payload helpers ---

    @staticmethod
    def _payload_int(op: Operation, key: str, default: Optional[int] = None) -> int:
        value = op.payload.get(key, default)
        if value is None or isinstance(value, bool) or not isinstance(value, int):
            raise EngineError(ErrorCode.INVALID_PAYLOAD, f"'{key}' must be an integer")
        return value

    @staticmethod
    def _payload_bool(op: Operation, key: str) -> bool:
        value = op.payload.get(key)
        if not isinstance(value, bool):
            raise EngineError(ErrorCode.INVALID_PAYLOAD, f"'{key}' must be a boolean")
        return value

    # --- Handlers ---

    def _open_record(self, owner: str) -> Tuple[StakeRecord, bool]:
        """Fetches the owner's record and pins it in the cache so its guard is shared."""
        created = not self.has_record(owner)
        record = self.get_record(owner)
        self.set_record(record)
        return record, created

    def _deposit(self, op: Operation, deposit: Callable[[StakeRecord], StakeRecord]) -> OperationResult:
        record, created = self._open_record(op.owner)
        try:
            deposit(record)
        except Exception:
            if created and not record.reentrancy_guard:
                self._records.pop(op.owner, None)
            raise
        return OperationResult(op_type=op.op_type, owner=op.owner, record=record.model_copy())

    def _apply_stake(self, op: Operation) -> OperationResult:
        return self._deposit(op, lambda r: self.ledger.deposit(r, op.amount, 0))

    def _apply_stake_with_lock(self, op: Operation) -> OperationResult:
        lock_period = self._payload_int(op, "lock_period")
        if lock_period == 0:
            raise EngineError(ErrorCode.INVALID_LOCK_PERIOD, "lock_period=0")
        return self._deposit(op, lambda r: self.ledger.deposit(r, op.amount, lock_period))

    def _apply_stake_dual(self, op: Operation) -> OperationResult:
        secondary = self._payload_int(op, "secondary_amount")
        return self._deposit(op, lambda r: self.ledger.deposit_dual(r, op.amount, secondary))

    def _apply_deposit_lp(self, op: Operation) -> OperationResult:
        return self._deposit(op, lambda r: self.ledger.deposit_lp(r, op.amount))

    def _apply_unstake(self, op: Operation) -> OperationResult:
        record = self.get_record(op.owner)
        transferred, penalty = self.ledger.withdraw(record, op.amount)
        self.set_record(record)
        return OperationResult(
            op_type=op.op_type, owner=op.owner, record=record.model_copy(),
            transferred=transferred, penalty=penalty,
        )

    def _apply_execute_trade(self, op: Operation) -> OperationResult:
        latency = require_u64(self._payload_int(op, "execution_latency_ms"), "execution_latency_ms")
        record = self._require_record(op.owner)
        quote = incentives.adjusted_fee_discount(
            record.amount, self.staking_duration(record), latency, record.is_locked, self.config
        )
        if quote.airdrop:
            self.ledger.credit(record, quote.airdrop)
            logger.info(f"Performance airdrop: {quote.airdrop} tokens added to {op.owner}")
        self.set_record(record)
        return OperationResult(op_type=op.op_type, owner=op.owner, record=record.model_copy(), quote=quote)

    def _apply_claim_rewards(self, op: Operation) -> OperationResult:
        liquidity = require_u64(self._payload_int(op, "liquidity_provided", 0), "liquidity_provided")
        record = self._require_record(op.owner)
        reward = incentives.reward_for_period(self.staking_duration(record), liquidity, self.config)

        transferred = 0
        if record.auto_restake:
            self.ledger.credit(record, reward.total)
            reward.compounded = True
            logger.info(f"Rewards auto-compounded for {op.owner}: {reward.total} tokens added "
                        f"(Base: {reward.base_reward}, LP Boost: {reward.lp_boost})")
        else:
            self.transfers.transfer(PRIMARY_ASSET, REWARD_VAULT_ACCOUNT, op.owner, reward.total)
            transferred = reward.total
            logger.info(f"Rewards claimed: {reward.total} tokens transferred to {op.owner}")

        self.set_record(record)
        return OperationResult(
            op_type=op.op_type, owner=op.owner, record=record.model_copy(),
            transferred=transferred, reward=reward,
        )

    def _apply_toggle_auto_restake(self, op: Operation) -> OperationResult:
        enabled = self._payload_bool(op, "enabled")
        record = self._require_record(op.owner)
        self.ledger.toggle_auto_restake(record, enabled)
        self.set_record(record)
        return OperationResult(op_type=op.op_type, owner=op.owner, record=record.model_copy())

    def _apply_borrow(self, op: Operation) -> OperationResult:
        record = self._require_record(op.owner)
        self.lending.borrow(record, op.amount)
        self.set_record(record)
        return OperationResult(op_type=op.op_type, owner=op.owner, record=record.model_copy())

    def _apply_flash_loan(self, op: Operation) -> OperationResult:
        record = self._require_record(op.owner)
        self.lending.flash_loan(record, op.amount)
        self.set_record(record)
        return OperationResult(
            op_type=op.op_type, owner=op.owner, record=record.model_copy(), transferred=op.amount,
        )

    def _apply_create_proposal(self, op: Operation) -> OperationResult:
        description = op.payload.get("description")
        if not isinstance(description, str):
            raise EngineError(ErrorCode.INVALID_PAYLOAD, "'description' must be a string")

        proposal_id = self.proposal_count + 1
        proposal = governance.create_proposal(proposal_id, op.owner, description, self.clock.now())
        self._proposals[proposal_id] = proposal
        self.proposal_count = proposal_id
        return OperationResult(op_type=op.op_type, owner=op.owner, proposal=proposal.model_copy())

    def _apply_vote_proposal(self, op: Operation) -> OperationResult:
        proposal_id = self._payload_int(op, "proposal_id")
        support = self._payload_bool(op, "support")

        proposal = self.get_proposal(proposal_id)
        if proposal is None:
            raise EngineError(ErrorCode.PROPOSAL_NOT_FOUND, f"proposal_id={proposal_id}")
        self._require_record(op.owner)

        power = self.voting_power(op.owner)
        governance.tally_vote(proposal, power, support)
        return OperationResult(
            op_type=op.op_type, owner=op.owner, proposal=proposal.model_copy(), voting_power=power,
        )

    def _apply_slash_stake(self, op: Operation) -> OperationResult:
        target = op.payload.get("target")
        if not isinstance(target, str) or not target:
            raise EngineError(ErrorCode.INVALID_PAYLOAD, "'target' must be an owner identity")
        percentage = self._payload_int(op, "percentage")

        record = self._require_record(target)
        slashed = risk.slash_stake(record, percentage)
        self.set_record(record)
        if self.track_metrics:
            metrics.record_slash(slashed)
        return OperationResult(op_type=op.op_type, owner=target, record=record.model_copy(), penalty=slashed)

    def _apply_donate_insurance(self, op: Operation) -> OperationResult:
        fund = self.get_insurance_fund()
        risk.donate_insurance(fund, self.transfers, op.owner, op.amount)
        return OperationResult(
            op_type=op.op_type, owner=op.owner, transferred=op.amount, insurance_balance=fund.balance,
        )
