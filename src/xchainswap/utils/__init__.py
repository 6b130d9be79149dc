"""Utility modules for xchainswap."""

from xchainswap.utils.amounts import from_readable_amount, to_readable_amount
from xchainswap.utils.locks import (
    LockTimeoutError,
    WalletLock,
    get_wallet_holder,
    get_wallet_lock,
)

__all__ = [
    "LockTimeoutError",
    "WalletLock",
    "from_readable_amount",
    "get_wallet_holder",
    "get_wallet_lock",
    "to_readable_amount",
]
