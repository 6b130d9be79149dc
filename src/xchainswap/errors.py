"""Error taxonomy for swap sessions.

Every error raised by a session stage derives from SwapError so the
entry point can report it and exit non-zero:

- ConfigError: invalid or missing configuration, raised before any network activity
- ProtocolError: the aggregator answered with an error or a malformed payload
- ChainTxFailure: a submitted transaction was included but failed, or never confirmed
- ChainQueryError: a read-only chain query failed
- FinalityTimeout: the source transaction succeeded but cross-chain completion
  could not be confirmed (funds may be in transit)
"""

from typing import Optional


class SwapError(Exception):
    """Base class for all swap session errors."""

    pass


class ConfigError(SwapError):
    """Raised when the session configuration is missing or invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ProtocolError(SwapError):
    """Raised when the aggregator response cannot be used."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ChainTxFailure(SwapError):
    """Raised when a submitted transaction did not succeed on-chain.

    The transaction hash is kept so the operator can inspect it manually.
    """

    def __init__(self, tx_hash: str, reason: str = "reverted"):
        self.tx_hash = tx_hash
        self.reason = reason
        super().__init__(f"Transaction {tx_hash} failed ({reason})")


class ChainQueryError(SwapError):
    """Raised when a read-only chain query fails."""

    pass


class FinalityTimeout(SwapError):
    """Raised when cross-chain completion could not be confirmed."""

    def __init__(self, chain: int, tx_hash: str, reason: str = "timeout"):
        self.chain = chain
        self.tx_hash = tx_hash
        self.reason = reason
        super().__init__(
            f"Cross-chain swap for tx {tx_hash} on chain {chain} not confirmed ({reason}). "
            f"Funds may be in transit, track the transaction manually."
        )
