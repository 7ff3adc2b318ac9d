from pydantic import BaseModel

# Fits the 200 byte description slot of a serialized proposal
MAX_DESCRIPTION_LENGTH = 200

class Proposal(BaseModel):
    proposal_id: int
    proposer: str
    description: str
    votes_for: int = 0
    votes_against: int = 0
    created_at: int = 0

class InsuranceFund(BaseModel):
    """Shared risk buffer. Only donations move the balance."""
    balance: int = 0
