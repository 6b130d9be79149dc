"""Transaction submission and inclusion tracking."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from xchainswap.chains import CHAINS, Chain
from xchainswap.errors import ChainTxFailure

if TYPE_CHECKING:
    from xchainswap.swap.signer import ChainSigner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionRequest:
    """Unsigned transaction with static chain gas parameters."""

    chain_id: int
    to: str
    data: str = "0x"
    value: int = 0
    gas_limit: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    @classmethod
    def for_chain(cls, chain: Chain, to: str, data: str = "0x", value: int = 0) -> "TransactionRequest":
        """Build a request carrying the chain's configured gas limits."""
        chain_config = CHAINS[chain]
        return cls(
            chain_id=int(chain),
            to=to,
            data=data,
            value=value,
            gas_limit=chain_config.gas_limit,
            max_fee_per_gas=chain_config.max_fee_per_gas,
            max_priority_fee_per_gas=chain_config.max_priority_fee_per_gas,
        )

    def to_tx_params(self) -> dict:
        """Convert to web3 transaction parameters (unset fields omitted)."""
        params = {
            "chainId": self.chain_id,
            "to": self.to,
            "data": self.data,
            "value": self.value,
        }
        if self.gas_limit is not None:
            params["gas"] = self.gas_limit
        if self.max_fee_per_gas is not None:
            params["maxFeePerGas"] = self.max_fee_per_gas
        if self.max_priority_fee_per_gas is not None:
            params["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
        return params


@dataclass(frozen=True)
class TransactionOutcome:
    """Observed inclusion result of a submitted transaction."""

    tx_hash: str
    success: bool
    block_number: Optional[int] = None


class TransactionSubmitter:
    """Submits signed transactions and waits for their inclusion.

    No retry is performed: a submission either succeeds, or the error
    propagates to the session.
    """

    def __init__(self, receipt_timeout: float = 300.0):
        self.receipt_timeout = receipt_timeout

    async def submit(
        self,
        request: TransactionRequest,
        signer: "ChainSigner",
    ) -> TransactionOutcome:
        """Sign, send and wait for a transaction to be included.

        Returns:
            TransactionOutcome with success=True

        Raises:
            ChainTxFailure: If the receipt has a non-success status or the
                transaction is not included within the receipt timeout
        """
        tx_hash = await signer.send_transaction(request)
        logger.info(f"Transaction sent on chain {request.chain_id}: {tx_hash}")

        try:
            receipt = await signer.wait_for_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeoutError as e:
            logger.error(f"Transaction {tx_hash} not confirmed after {self.receipt_timeout}s")
            raise ChainTxFailure(tx_hash, reason="not confirmed") from e

        outcome = TransactionOutcome(
            tx_hash=tx_hash,
            success=receipt.get("status") == 1,
            block_number=receipt.get("blockNumber"),
        )

        if not outcome.success:
            logger.error(f"Transaction {tx_hash} included in block {outcome.block_number} but failed")
            raise ChainTxFailure(tx_hash)

        logger.info(f"Transaction {tx_hash} confirmed in block {outcome.block_number}")
        return outcome
