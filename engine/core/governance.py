import logging

from protocol.types.common import EngineError, ErrorCode
from protocol.types.governance import Proposal, MAX_DESCRIPTION_LENGTH
from .checked import checked_add

logger = logging.getLogger(__name__)


def create_proposal(proposal_id: int, proposer: str, description: str, now: int) -> Proposal:
    """Builds a fresh proposal with empty tallies."""
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise EngineError(
            ErrorCode.DESCRIPTION_TOO_LONG,
            f"{len(description)} chars (max {MAX_DESCRIPTION_LENGTH})"
        )
    proposal = Proposal(
        proposal_id=proposal_id,
        proposer=proposer,
        description=description,
        votes_for=0,
        votes_against=0,
        created_at=now,
    )
    logger.info(f"New governance proposal #{proposal_id} created by {proposer}")
    return proposal


def tally_vote(proposal: Proposal, power: int, support: bool) -> Proposal:
    """
    Adds `power` to one side of the proposal.

    Repeated calls by the same voter add again; there is no per-voter record.
    """
    if support:
        proposal.votes_for = checked_add(proposal.votes_for, power)
    else:
        proposal.votes_against = checked_add(proposal.votes_against, power)
    logger.info(f"Vote cast on proposal #{proposal.proposal_id} with power: {power} (support={support})")
    return proposal
