"""Cross-chain aggregator integration."""

from xchainswap.aggregator.models import (
    SwapQuote,
    TransactionStatusCode,
    TransactionStatusResponse,
)
from xchainswap.aggregator.symbiosis import SymbiosisClient

__all__ = [
    "SwapQuote",
    "SymbiosisClient",
    "TransactionStatusCode",
    "TransactionStatusResponse",
]
