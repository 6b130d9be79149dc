"""ERC20 spending approval for the aggregator's router."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from xchainswap.chains import Token
from xchainswap.swap.signer import AllowanceQueryUnsupported, ChainSigner
from xchainswap.swap.transactions import TransactionOutcome, TransactionSubmitter
from xchainswap.utils.amounts import from_readable_amount

logger = logging.getLogger(__name__)


class AllowanceStatus(str, Enum):
    """How the allowance requirement was resolved."""

    NOT_REQUIRED = "not_required"  # Native asset, or allowance() unsupported
    SUFFICIENT = "sufficient"
    APPROVED = "approved"  # approve() transaction submitted and confirmed


@dataclass(frozen=True)
class AllowanceDecision:
    """Result of an allowance check."""

    status: AllowanceStatus
    outcome: Optional[TransactionOutcome] = None
    current_allowance: Optional[int] = None
    required_amount: Optional[int] = None

    @property
    def tx_hash(self) -> Optional[str]:
        return self.outcome.tx_hash if self.outcome else None


class AllowanceManager:
    """Ensures the spender may transfer the requested amount.

    Approvals are for the exact requested amount, never unlimited.
    """

    def __init__(
        self,
        submitter: TransactionSubmitter,
        assume_approved_without_allowance_abi: bool = True,
    ):
        """Initialize manager.

        Args:
            submitter: Used to send approve() transactions
            assume_approved_without_allowance_abi: Policy for tokens whose
                contract has no allowance() method. True treats them as not
                requiring approval; False raises AllowanceQueryUnsupported.
        """
        self.submitter = submitter
        self.assume_approved_without_allowance_abi = assume_approved_without_allowance_abi

    async def ensure_allowance(
        self,
        token: Token,
        signer: ChainSigner,
        spender: str,
        readable_amount: str,
    ) -> AllowanceDecision:
        """Approve spender for readable_amount of token if needed.

        Args:
            token: Token being spent
            signer: Signer of the owning wallet on the token's chain
            spender: Address that must be allowed to transfer the token
            readable_amount: Amount in human-readable units

        Returns:
            AllowanceDecision

        Raises:
            ChainTxFailure: If the approval transaction fails
            AllowanceQueryUnsupported: If allowance() is unavailable and the
                fallback policy is disabled
        """
        # Native tokens do not require allowance
        if token.is_native:
            logger.debug(f"{token} is native, no approval required")
            return AllowanceDecision(status=AllowanceStatus.NOT_REQUIRED)

        required = from_readable_amount(readable_amount, token.decimals)

        try:
            current = await signer.get_allowance(token, spender)
        except AllowanceQueryUnsupported as e:
            if not self.assume_approved_without_allowance_abi:
                raise
            logger.warning(
                f"No allowance ABI in {token} contract, assuming no approval is required "
                f"for token spending ({e})"
            )
            return AllowanceDecision(status=AllowanceStatus.NOT_REQUIRED, required_amount=required)

        if current >= required:
            logger.info(f"Allowance for {spender} already sufficient: {current} >= {required}")
            return AllowanceDecision(
                status=AllowanceStatus.SUFFICIENT,
                current_allowance=current,
                required_amount=required,
            )

        logger.info(f"Approving {spender} to spend {readable_amount} {token.symbol} (allowance {current})")
        request = await signer.build_approval(token, spender, required)
        outcome = await self.submitter.submit(request, signer)
        logger.info(f"Token approval tx: {outcome.tx_hash}")

        return AllowanceDecision(
            status=AllowanceStatus.APPROVED,
            outcome=outcome,
            current_allowance=current,
            required_amount=required,
        )
