import pytest

from engine.core.clock import ManualClock
from engine.core.events import EventBus
from engine.core.state import EngineState
from engine.core.transfer import InMemoryTransferService
from engine.storage.db import StorageDB
from protocol.config.params import (
    UNIT, PRIMARY_ASSET, SECONDARY_ASSET, LP_ASSET, REWARD_VAULT_ACCOUNT,
)

GENESIS_TIME = 1_700_000_000
FUNDED = ("alice", "bob", "carol")
STARTING_BALANCE = 1_000_000 * UNIT


@pytest.fixture
def custody():
    book = InMemoryTransferService()
    for owner in FUNDED:
        book.mint(PRIMARY_ASSET, owner, STARTING_BALANCE)
        book.mint(SECONDARY_ASSET, owner, STARTING_BALANCE)
        book.mint(LP_ASSET, owner, STARTING_BALANCE)
    book.mint(PRIMARY_ASSET, REWARD_VAULT_ACCOUNT, 10_000 * UNIT)
    return book


@pytest.fixture
def state(tmp_path, custody):
    """Engine over a fresh sqlite file, a manual clock and a funded custody book."""
    db = StorageDB(str(tmp_path / "engine.db"))
    engine = EngineState(db, transfers=custody, clock=ManualClock(GENESIS_TIME), events=EventBus())
    yield engine
    db.close()
