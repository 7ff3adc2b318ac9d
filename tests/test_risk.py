import pytest

from engine.core.risk import slash_amount
from protocol.config.params import PRIMARY_ASSET, INSURANCE_VAULT_ACCOUNT, U64_MAX
from protocol.types.common import OpType, EngineError, ErrorCode
from protocol.types.operation import Operation
from conftest import STARTING_BALANCE


def op(op_type, owner, amount=0, **payload):
    return Operation(op_type=op_type, owner=owner, amount=amount, payload=payload)


def slash(state, target, percentage):
    return state.apply_operation(op(OpType.SLASH_STAKE, "governance", target=target, percentage=percentage))


def test_slash_reduces_stake(state):
    state.apply_operation(op(OpType.STAKE, "alice", 1_000))

    result = slash(state, "alice", 10)

    assert result.owner == "alice"
    assert result.penalty == 100
    assert state.get_record("alice").amount == 900


def test_slash_rounds_down(state):
    state.apply_operation(op(OpType.STAKE, "alice", 999))
    slash(state, "alice", 5)
    # 999 * 5 // 100 == 49
    assert state.get_record("alice").amount == 950


def test_slash_over_hundred_percent_underflows(state):
    state.apply_operation(op(OpType.STAKE, "alice", 1_000))

    with pytest.raises(EngineError) as exc_info:
        slash(state, "alice", 150)
    assert exc_info.value.code == ErrorCode.UNDERFLOW
    assert state.get_record("alice").amount == 1_000


def test_slash_unknown_target(state):
    with pytest.raises(EngineError) as exc_info:
        slash(state, "nobody", 10)
    assert exc_info.value.code == ErrorCode.STAKE_NOT_FOUND


def test_slash_amount_overflow():
    with pytest.raises(EngineError) as exc_info:
        slash_amount(U64_MAX, 2)
    assert exc_info.value.code == ErrorCode.OVERFLOW


def test_donations_accumulate(state):
    state.apply_operation(op(OpType.DONATE_INSURANCE, "alice", 500))
    result = state.apply_operation(op(OpType.DONATE_INSURANCE, "bob", 250))

    assert result.insurance_balance == 750
    assert state.get_insurance_fund().balance == 750
    assert state.transfers.balance_of(PRIMARY_ASSET, INSURANCE_VAULT_ACCOUNT) == 750
    assert state.transfers.balance_of(PRIMARY_ASSET, "alice") == STARTING_BALANCE - 500


def test_donation_without_funds_changes_nothing(state):
    with pytest.raises(EngineError) as exc_info:
        state.apply_operation(op(OpType.DONATE_INSURANCE, "nobody", 500))
    assert exc_info.value.code == ErrorCode.TRANSFER_FAILED
    assert state.get_insurance_fund().balance == 0


def test_donation_must_be_positive(state):
    with pytest.raises(EngineError) as exc_info:
        state.apply_operation(op(OpType.DONATE_INSURANCE, "alice", 0))
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
