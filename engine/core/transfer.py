"""
Asset transfer boundary.

The engine never owns balances outside its own records; it asks an
AssetTransferService to move assets between custodial accounts. A transfer
either completes before the engine mutates anything or raises.
"""
from typing import Dict, Tuple, Optional, Protocol
import logging
from threading import RLock

from protocol.types.common import EngineError, ErrorCode

logger = logging.getLogger(__name__)


class AssetTransferService(Protocol):
    def transfer(self, asset: str, source: str, destination: str, amount: int) -> None:
        ...


class InMemoryTransferService:
    """
    Custody book keyed by (asset, account).

    Used by the node (persisted through EngineState) and by tests.
    """

    def __init__(self, balances: Optional[Dict[Tuple[str, str], int]] = None):
        self._balances: Dict[Tuple[str, str], int] = dict(balances) if balances else {}
        self._lock = RLock()

    def balance_of(self, asset: str, account: str) -> int:
        return self._balances.get((asset, account), 0)

    def mint(self, asset: str, account: str, amount: int):
        """Credits an account out of thin air (genesis allocation, test funding)."""
        with self._lock:
            self._balances[(asset, account)] = self.balance_of(asset, account) + amount

    def transfer(self, asset: str, source: str, destination: str, amount: int) -> None:
        with self._lock:
            available = self.balance_of(asset, source)
            if available < amount:
                raise EngineError(
                    ErrorCode.TRANSFER_FAILED,
                    f"{source} holds {available} {asset}, needs {amount}"
                )
            self._balances[(asset, source)] = available - amount
            self._balances[(asset, destination)] = self.balance_of(asset, destination) + amount
            logger.debug(f"Transfer {amount} {asset}: {source} -> {destination}")

    def items(self) -> Dict[Tuple[str, str], int]:
        with self._lock:
            return dict(self._balances)
