import pytest

from engine.core.governance import tally_vote
from protocol.config.economic_model import DAY
from protocol.config.params import U64_MAX
from protocol.types.common import OpType, EngineError, ErrorCode
from protocol.types.governance import Proposal
from protocol.types.operation import Operation
from conftest import GENESIS_TIME


def op(op_type, owner, amount=0, **payload):
    return Operation(op_type=op_type, owner=owner, amount=amount, payload=payload)


def test_create_proposal(state):
    result = state.apply_operation(op(OpType.CREATE_PROPOSAL, "alice", description="Lower the unstake penalty"))

    proposal = result.proposal
    assert proposal.proposal_id == 1
    assert proposal.proposer == "alice"
    assert proposal.description == "Lower the unstake penalty"
    assert proposal.votes_for == 0
    assert proposal.votes_against == 0
    assert proposal.created_at == GENESIS_TIME

    second = state.apply_operation(op(OpType.CREATE_PROPOSAL, "alice", description="Second"))
    assert second.proposal.proposal_id == 2
    assert [p.proposal_id for p in state.get_all_proposals()] == [1, 2]


def test_create_proposal_description_limit(state):
    state.apply_operation(op(OpType.CREATE_PROPOSAL, "alice", description="x" * 200))

    with pytest.raises(EngineError) as exc_info:
        state.apply_operation(op(OpType.CREATE_PROPOSAL, "alice", description="x" * 201))
    assert exc_info.value.code == ErrorCode.DESCRIPTION_TOO_LONG
    assert state.proposal_count == 1


def test_vote_weighted_by_stake_and_duration(state):
    state.apply_operation(op(OpType.STAKE, "alice", 1_000_000))
    state.apply_operation(op(OpType.CREATE_PROPOSAL, "carol", description="Fund audits"))
    state.clock.advance(60 * DAY)
    state.apply_operation(op(OpType.STAKE, "bob", 500))

    yes = state.apply_operation(op(OpType.VOTE_PROPOSAL, "alice", proposal_id=1, support=True))
    no = state.apply_operation(op(OpType.VOTE_PROPOSAL, "bob", proposal_id=1, support=False))

    assert yes.voting_power == 1_020_000
    assert no.voting_power == 500
    proposal = state.get_proposal(1)
    assert proposal.votes_for == 1_020_000
    assert proposal.votes_against == 500


def test_repeat_votes_add_again(state):
    state.apply_operation(op(OpType.STAKE, "alice", 1_000))
    state.apply_operation(op(OpType.CREATE_PROPOSAL, "alice", description="Repeat"))

    state.apply_operation(op(OpType.VOTE_PROPOSAL, "alice", proposal_id=1, support=True))
    state.apply_operation(op(OpType.VOTE_PROPOSAL, "alice", proposal_id=1, support=True))

    assert state.get_proposal(1).votes_for == 2_000


def test_vote_unknown_proposal(state):
    state.apply_operation(op(OpType.STAKE, "alice", 1_000))
    with pytest.raises(EngineError) as exc_info:
        state.apply_operation(op(OpType.VOTE_PROPOSAL, "alice", proposal_id=42, support=True))
    assert exc_info.value.code == ErrorCode.PROPOSAL_NOT_FOUND


def test_vote_requires_stake(state):
    state.apply_operation(op(OpType.CREATE_PROPOSAL, "alice", description="No stake"))
    with pytest.raises(EngineError) as exc_info:
        state.apply_operation(op(OpType.VOTE_PROPOSAL, "bob", proposal_id=1, support=False))
    assert exc_info.value.code == ErrorCode.STAKE_NOT_FOUND


def test_tally_overflow_leaves_proposal_unchanged():
    proposal = Proposal(proposal_id=1, proposer="alice", description="Full", votes_for=U64_MAX)

    with pytest.raises(EngineError) as exc_info:
        tally_vote(proposal, 1, True)
    assert exc_info.value.code == ErrorCode.OVERFLOW
    assert proposal.votes_for == U64_MAX

    tally_vote(proposal, 7, False)
    assert proposal.votes_against == 7
