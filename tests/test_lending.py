import pytest

from engine.core.lending import LendingController
from engine.core.transfer import InMemoryTransferService
from protocol.config.params import PRIMARY_ASSET, VAULT_ACCOUNT
from protocol.types.common import OpType, EngineError, ErrorCode
from protocol.types.operation import Operation
from protocol.types.stake import StakeRecord
from conftest import STARTING_BALANCE


def op(op_type, owner, amount=0, **payload):
    return Operation(op_type=op_type, owner=owner, amount=amount, payload=payload)


@pytest.fixture
def staked(state):
    state.apply_operation(op(OpType.STAKE, "alice", 1_000))
    return state


def test_borrow_cap_is_half_the_stake(staked):
    with pytest.raises(EngineError) as exc_info:
        staked.apply_operation(op(OpType.BORROW, "alice", 501))
    assert exc_info.value.code == ErrorCode.BORROW_LIMIT_EXCEEDED
    assert staked.get_record("alice").borrowed_amount == 0

    result = staked.apply_operation(op(OpType.BORROW, "alice", 500))
    assert result.record.borrowed_amount == 500


def test_borrow_cap_is_cumulative(staked):
    staked.apply_operation(op(OpType.BORROW, "alice", 300))
    staked.apply_operation(op(OpType.BORROW, "alice", 200))

    with pytest.raises(EngineError) as exc_info:
        staked.apply_operation(op(OpType.BORROW, "alice", 1))
    assert exc_info.value.code == ErrorCode.BORROW_LIMIT_EXCEEDED
    assert staked.get_record("alice").borrowed_amount == 500


def test_borrow_moves_no_funds(staked):
    before = staked.transfers.balance_of(PRIMARY_ASSET, "alice")
    staked.apply_operation(op(OpType.BORROW, "alice", 250))
    assert staked.transfers.balance_of(PRIMARY_ASSET, "alice") == before
    assert staked.transfers.balance_of(PRIMARY_ASSET, VAULT_ACCOUNT) == 1_000


def test_borrow_requires_stake_record(state):
    with pytest.raises(EngineError) as exc_info:
        state.apply_operation(op(OpType.BORROW, "bob", 1))
    assert exc_info.value.code == ErrorCode.STAKE_NOT_FOUND


def test_borrow_zero_rejected(staked):
    with pytest.raises(EngineError) as exc_info:
        staked.apply_operation(op(OpType.BORROW, "alice", 0))
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT


def test_flash_loan_pays_out_of_vault(staked):
    result = staked.apply_operation(op(OpType.FLASH_LOAN, "alice", 400))

    assert result.transferred == 400
    assert result.record.borrowed_amount == 400
    assert staked.transfers.balance_of(PRIMARY_ASSET, "alice") == STARTING_BALANCE - 1_000 + 400
    assert staked.transfers.balance_of(PRIMARY_ASSET, VAULT_ACCOUNT) == 600


def test_flash_loan_shares_the_borrow_cap(staked):
    staked.apply_operation(op(OpType.BORROW, "alice", 400))

    with pytest.raises(EngineError) as exc_info:
        staked.apply_operation(op(OpType.FLASH_LOAN, "alice", 101))
    assert exc_info.value.code == ErrorCode.BORROW_LIMIT_EXCEEDED
    assert staked.transfers.balance_of(PRIMARY_ASSET, VAULT_ACCOUNT) == 1_000


def test_flash_loan_fails_when_vault_is_short():
    custody = InMemoryTransferService()
    controller = LendingController(custody)
    record = StakeRecord(owner="alice", amount=1_000)

    with pytest.raises(EngineError) as exc_info:
        controller.flash_loan(record, 100)
    assert exc_info.value.code == ErrorCode.TRANSFER_FAILED
    assert record.borrowed_amount == 0


def test_limits_round_down():
    controller = LendingController(InMemoryTransferService())
    record = StakeRecord(owner="alice", amount=1_001, borrowed_amount=200)
    assert controller.max_borrow(record) == 500
    assert controller.available_to_borrow(record) == 300
