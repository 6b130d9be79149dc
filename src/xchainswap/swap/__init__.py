"""Swap settlement protocol.

Provides:
- SwapExecutor: Session orchestration (quote, approve, submit, settle)
- AllowanceManager: ERC20 approval reconciliation
- TransactionSubmitter: Submission and inclusion tracking
- FinalityPoller: Cross-chain completion polling
- EVM signers backed by web3.py
"""

from xchainswap.swap.allowance import AllowanceDecision, AllowanceManager, AllowanceStatus
from xchainswap.swap.executor import SessionState, SwapExecutor, SwapSession
from xchainswap.swap.finality import FinalityPoller, FinalityResult
from xchainswap.swap.signer import (
    AllowanceQueryUnsupported,
    ChainSigner,
    EVMSigner,
    SignerFactory,
)
from xchainswap.swap.transactions import (
    TransactionOutcome,
    TransactionRequest,
    TransactionSubmitter,
)

__all__ = [
    # Orchestration
    "SessionState",
    "SwapExecutor",
    "SwapSession",
    # Stages
    "AllowanceDecision",
    "AllowanceManager",
    "AllowanceStatus",
    "FinalityPoller",
    "FinalityResult",
    "TransactionOutcome",
    "TransactionRequest",
    "TransactionSubmitter",
    # Signers
    "AllowanceQueryUnsupported",
    "ChainSigner",
    "EVMSigner",
    "SignerFactory",
]
