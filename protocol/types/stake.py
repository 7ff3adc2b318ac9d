from pydantic import BaseModel

class StakeRecord(BaseModel):
    """Per-participant staking position. Field order is the serialization order."""
    owner: str                      # Staking participant identity
    amount: int = 0                 # Staked primary asset (base units)
    secondary_amount: int = 0       # Dual-staking second asset (0 if unused)
    lp_deposit: int = 0             # LP tokens deposited for yield farming
    last_staked_time: int = 0       # Unix timestamp of the most recent deposit
    lock_period: int = 0            # Seconds; 0 = flexible staking
    locked_until: int = 0           # last_staked_time + lock_period (diagnostic)
    borrowed_amount: int = 0        # Obligation recorded against this stake
    auto_restake: bool = False      # Compound claimed rewards into amount
    reentrancy_guard: bool = False  # Held while a deposit is in progress

    @property
    def is_locked(self) -> bool:
        return self.lock_period > 0
