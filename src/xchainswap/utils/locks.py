"""Per-wallet serialization of transaction submission.

Nonces are taken from the node's pending transaction count, so two sessions
signing for the same address at once would read the same nonce and one
submission would replace or reject the other. A session therefore holds the
wallet's lock from its first balance read until its final report.

The registry also remembers which operation holds each wallet so a session
that gives up waiting can say what it was waiting for.
"""

import asyncio
import logging
from typing import Optional

from xchainswap.errors import SwapError

logger = logging.getLogger(__name__)

# Checksum-insensitive address -> lock
_wallet_locks: dict[str, asyncio.Lock] = {}
# Address -> operation currently holding the lock
_wallet_holders: dict[str, str] = {}


def _key(address: str) -> str:
    return address.strip().lower()


def get_wallet_lock(address: str) -> asyncio.Lock:
    """Get or create the lock for a wallet address (case-insensitive)."""
    return _wallet_locks.setdefault(_key(address), asyncio.Lock())


def get_wallet_holder(address: str) -> Optional[str]:
    """Operation currently holding the wallet, if any."""
    return _wallet_holders.get(_key(address))


class LockTimeoutError(SwapError):
    """Raised when a wallet stays busy longer than the lock timeout."""

    def __init__(self, address: str, timeout: float, holder: Optional[str] = None):
        self.address = address
        self.timeout = timeout
        self.holder = holder
        busy_with = f" with {holder}" if holder else ""
        super().__init__(
            f"Wallet {address} is busy{busy_with}; waited {timeout}s to keep nonces sequential"
        )


class WalletLock:
    """Exclusive use of a signing wallet for one operation.

    Example:
        async with WalletLock(signer.address, operation="swap_session"):
            await submitter.submit(request, signer)
    """

    def __init__(
        self,
        address: str,
        timeout: Optional[float] = 30.0,
        operation: str = "swap_session",
    ):
        """Initialize the lock.

        Args:
            address: Wallet address
            timeout: Maximum wait in seconds (None waits indefinitely)
            operation: Name recorded as the holder while the lock is held
        """
        self.address = address
        self.timeout = timeout
        self.operation = operation
        self._lock = get_wallet_lock(address)
        self._held = False

    async def __aenter__(self) -> "WalletLock":
        holder = get_wallet_holder(self.address)
        if holder:
            logger.info(f"Wallet {self.address} busy with {holder}, waiting ({self.operation})")

        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            holder = get_wallet_holder(self.address)
            logger.warning(
                f"Gave up waiting for wallet {self.address} after {self.timeout}s "
                f"(held by {holder or 'unknown'}): {self.operation}"
            )
            raise LockTimeoutError(self.address, self.timeout, holder) from None

        self._held = True
        _wallet_holders[_key(self.address)] = self.operation
        logger.debug(f"Wallet {self.address} reserved for {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._held:
            _wallet_holders.pop(_key(self.address), None)
            self._lock.release()
            self._held = False
            logger.debug(f"Wallet {self.address} released by {self.operation}")
        return False


def clear_wallet_locks() -> None:
    """Forget all wallet locks and holders (tests use a fresh event loop each)."""
    _wallet_locks.clear()
    _wallet_holders.clear()
