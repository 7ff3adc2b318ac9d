from enum import Enum
from typing import Optional

class OpType(str, Enum):
    STAKE = "STAKE"
    STAKE_WITH_LOCK = "STAKE_WITH_LOCK"
    STAKE_DUAL = "STAKE_DUAL"
    DEPOSIT_LP = "DEPOSIT_LP"
    UNSTAKE = "UNSTAKE"

    # Incentives
    EXECUTE_TRADE = "EXECUTE_TRADE"
    CLAIM_REWARDS = "CLAIM_REWARDS"
    TOGGLE_AUTO_RESTAKE = "TOGGLE_AUTO_RESTAKE"

    # Lending
    BORROW = "BORROW"
    FLASH_LOAN = "FLASH_LOAN"

    # Governance
    CREATE_PROPOSAL = "CREATE_PROPOSAL"
    VOTE_PROPOSAL = "VOTE_PROPOSAL"

    # Risk controls
    SLASH_STAKE = "SLASH_STAKE"         # Privileged
    DONATE_INSURANCE = "DONATE_INSURANCE"

class ErrorCode(str, Enum):
    OVERFLOW = "Overflow"
    UNDERFLOW = "Underflow"
    INSUFFICIENT_STAKED_AMOUNT = "InsufficientStakedAmount"
    TOKENS_LOCKED = "TokensLocked"
    INVALID_LOCK_PERIOD = "InvalidLockPeriod"
    REENTRANCY_DETECTED = "ReentrancyDetected"
    BORROW_LIMIT_EXCEEDED = "BorrowLimitExceeded"
    INVALID_AMOUNT = "InvalidAmount"
    DESCRIPTION_TOO_LONG = "DescriptionTooLong"
    PROPOSAL_NOT_FOUND = "ProposalNotFound"
    STAKE_NOT_FOUND = "StakeNotFound"
    INVALID_PAYLOAD = "InvalidPayload"
    TRANSFER_FAILED = "TransferFailed"

ERROR_MESSAGES = {
    ErrorCode.OVERFLOW: "Arithmetic operation overflowed.",
    ErrorCode.UNDERFLOW: "Arithmetic operation underflowed.",
    ErrorCode.INSUFFICIENT_STAKED_AMOUNT: "Insufficient staked amount to complete unstaking.",
    ErrorCode.TOKENS_LOCKED: "Tokens are still locked.",
    ErrorCode.INVALID_LOCK_PERIOD: "Invalid lock period specified.",
    ErrorCode.REENTRANCY_DETECTED: "Reentrancy detected.",
    ErrorCode.BORROW_LIMIT_EXCEEDED: "Borrow limit exceeded.",
    ErrorCode.INVALID_AMOUNT: "Amount must be a positive integer within u64 range.",
    ErrorCode.DESCRIPTION_TOO_LONG: "Proposal description too long.",
    ErrorCode.PROPOSAL_NOT_FOUND: "Proposal not found.",
    ErrorCode.STAKE_NOT_FOUND: "No stake record for this owner.",
    ErrorCode.INVALID_PAYLOAD: "Missing or malformed operation payload.",
    ErrorCode.TRANSFER_FAILED: "Asset transfer failed.",
}

class ProtocolError(Exception):
    pass

class EngineError(ProtocolError):
    """
    Terminal failure of a single engine operation.

    No record is mutated when this is raised; callers resubmit with corrected input.
    """

    def __init__(self, code: ErrorCode, detail: Optional[str] = None):
        self.code = code
        self.detail = detail
        message = ERROR_MESSAGES[code]
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": str(self)}
