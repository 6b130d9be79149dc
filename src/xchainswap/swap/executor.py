"""Swap session orchestration.

Runs one cross-chain swap through its stages:
1. Quote: get the route and source-chain transaction from Symbiosis
2. Approve: make sure the router may spend the source token
3. Submit: send the swap transaction and wait for inclusion
4. Settle: poll Symbiosis until the destination leg completes

Each stage's output is the next stage's precondition. Any failure aborts the
session; nothing is retried or compensated, since on-chain submissions are
irreversible.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from xchainswap.aggregator.models import SwapQuote
from xchainswap.aggregator.symbiosis import SymbiosisClient
from xchainswap.chains import Token
from xchainswap.config import SessionConfig
from xchainswap.errors import FinalityTimeout, ProtocolError, SwapError
from xchainswap.swap.allowance import AllowanceDecision, AllowanceManager
from xchainswap.swap.finality import FinalityPoller, FinalityResult
from xchainswap.swap.signer import SignerFactory
from xchainswap.swap.transactions import (
    TransactionOutcome,
    TransactionRequest,
    TransactionSubmitter,
)
from xchainswap.utils.amounts import to_readable_amount
from xchainswap.utils.locks import WalletLock

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a swap session."""

    CREATED = "created"
    QUOTED = "quoted"
    APPROVED = "approved"
    SUBMITTED = "submitted"
    SETTLED = "settled"
    STUCK = "stuck"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.SETTLED, SessionState.STUCK, SessionState.FAILED)


_TRANSITIONS: dict[SessionState, tuple[SessionState, ...]] = {
    SessionState.CREATED: (SessionState.QUOTED, SessionState.FAILED),
    SessionState.QUOTED: (SessionState.APPROVED, SessionState.FAILED),
    SessionState.APPROVED: (SessionState.SUBMITTED, SessionState.FAILED),
    SessionState.SUBMITTED: (SessionState.SETTLED, SessionState.STUCK, SessionState.FAILED),
}


@dataclass(frozen=True)
class BalanceSnapshot:
    """Wallet balances of the swapped tokens at one point in time."""

    source: int
    destination: int


@dataclass
class SwapSession:
    """State of a single swap."""

    source_token: Token
    destination_token: Token
    amount: str
    slippage_bps: int
    wallet_address: str
    state: SessionState = SessionState.CREATED
    quote: Optional[SwapQuote] = None
    allowance: Optional[AllowanceDecision] = None
    swap_outcome: Optional[TransactionOutcome] = None
    finality: Optional[FinalityResult] = None
    balances_before: Optional[BalanceSnapshot] = None
    balances_after: Optional[BalanceSnapshot] = None
    error: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def advance(self, new_state: SessionState) -> None:
        """Move to the next state.

        Raises:
            RuntimeError: On a transition the lifecycle does not allow
        """
        allowed = _TRANSITIONS.get(self.state, ())
        if new_state not in allowed:
            raise RuntimeError(f"Invalid session transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Session {self.state.value} -> {new_state.value}")
        self.state = new_state
        if new_state.is_terminal:
            self.finished_at = time.time()

    @property
    def source_delta(self) -> Optional[int]:
        if self.balances_before is None or self.balances_after is None:
            return None
        return self.balances_after.source - self.balances_before.source

    @property
    def destination_delta(self) -> Optional[int]:
        if self.balances_before is None or self.balances_after is None:
            return None
        return self.balances_after.destination - self.balances_before.destination

    def to_dict(self) -> dict:
        """Summary for reporting."""
        data = {
            "state": self.state.value,
            "source": str(self.source_token),
            "destination": str(self.destination_token),
            "amount": self.amount,
            "slippage_bps": self.slippage_bps,
            "wallet": self.wallet_address,
            "approval_tx": self.allowance.tx_hash if self.allowance else None,
            "swap_tx": self.swap_outcome.tx_hash if self.swap_outcome else None,
            "destination_tx": self.finality.destination_tx_hash if self.finality else None,
            "error": self.error,
        }
        if self.quote:
            data["min_amount_out"] = str(self.quote.min_amount_out_readable)
            data["estimated_time_seconds"] = self.quote.estimated_time_seconds
        if self.source_delta is not None:
            data["source_delta"] = to_readable_amount(self.source_delta, self.source_token.decimals)
            data["destination_delta"] = to_readable_amount(
                self.destination_delta, self.destination_token.decimals
            )
        return data


class SwapExecutor:
    """Executes one cross-chain swap session."""

    def __init__(
        self,
        config: SessionConfig,
        client: Optional[SymbiosisClient] = None,
        signers: Optional[SignerFactory] = None,
        submitter: Optional[TransactionSubmitter] = None,
        allowance_manager: Optional[AllowanceManager] = None,
        poller: Optional[FinalityPoller] = None,
    ):
        self.config = config
        self.client = client or SymbiosisClient(
            base_url=config.aggregator_base_url,
            timeout=config.http_timeout_seconds,
        )
        self.signers = signers or SignerFactory.from_config(config)
        self.submitter = submitter or TransactionSubmitter(
            receipt_timeout=config.receipt_timeout_seconds
        )
        self.allowance_manager = allowance_manager or AllowanceManager(
            self.submitter,
            assume_approved_without_allowance_abi=config.assume_approved_without_allowance_abi,
        )
        self.poller = poller or FinalityPoller(
            self.client,
            max_poll_count=config.max_poll_count,
            poll_interval=config.poll_interval_seconds,
            treat_reverted_as_terminal=config.treat_reverted_as_terminal,
        )

    def create_session(self) -> SwapSession:
        """Create a fresh session for the configured swap."""
        signer = self.signers.get_signer(self.config.source_chain)
        return SwapSession(
            source_token=self.config.source_token,
            destination_token=self.config.destination_token,
            amount=self.config.amount,
            slippage_bps=self.config.slippage_bps,
            wallet_address=signer.address,
        )

    async def get_balances(self, session: SwapSession) -> BalanceSnapshot:
        """Read source and destination balances (diagnostics only)."""
        source_signer = self.signers.get_signer(session.source_token.chain)
        destination_signer = self.signers.get_signer(session.destination_token.chain)
        return BalanceSnapshot(
            source=await source_signer.get_balance(session.source_token),
            destination=await destination_signer.get_balance(session.destination_token),
        )

    async def get_quote(self, session: SwapSession) -> SwapQuote:
        """Request the route for a session (no state change)."""
        quote = await self.client.request_swap(
            session.source_token,
            session.amount,
            session.destination_token,
            session.wallet_address,
            session.wallet_address,
            session.slippage_bps,
        )
        if quote.chain_id != int(session.source_token.chain):
            raise ProtocolError(
                f"Route transaction targets chain {quote.chain_id}, "
                f"expected {int(session.source_token.chain)}"
            )
        return quote

    async def run(self, session: SwapSession, quote_only: bool = False) -> SwapSession:
        """Run a session to completion.

        Args:
            session: A session in CREATED state
            quote_only: Stop after the quote without sending transactions

        Returns:
            The session, SETTLED (or QUOTED in quote-only mode)

        Raises:
            SwapError: The first stage failure; the session is left in its
                terminal state with the error recorded
            RuntimeError: If the session already ran
        """
        if session.state != SessionState.CREATED:
            raise RuntimeError(f"Session already ran (state: {session.state.value})")

        async with WalletLock(
            session.wallet_address,
            timeout=self.config.lock_timeout_seconds,
            operation="swap_session",
        ):
            logger.info(
                f"Starting swap: {session.amount} {session.source_token} -> "
                f"{session.destination_token} for {session.wallet_address}"
            )

            try:
                session.balances_before = await self.get_balances(session)
                await self._run_stages(session, quote_only)
            except SwapError as e:
                self._fail(session, str(e))
                logger.error(f"Swap session {session.state.value}: {e}")
                await self._record_final_balances(session)
                raise
            except Exception as e:
                # Unclassified failure from a signer or library
                self._fail(session, f"{type(e).__name__}: {e}")
                logger.exception(f"Swap session {session.state.value}: unexpected error")
                await self._record_final_balances(session)
                raise
            except asyncio.CancelledError:
                self._fail(session, "cancelled")
                logger.warning(f"Swap session cancelled in state {session.state.value}")
                raise

            await self._record_final_balances(session)

        return session

    async def _run_stages(self, session: SwapSession, quote_only: bool) -> None:
        chain = session.source_token.chain
        signer = self.signers.get_signer(chain)

        session.quote = await self.get_quote(session)
        session.advance(SessionState.QUOTED)

        if quote_only:
            logger.info("Quote-only mode, no transactions sent")
            return

        session.allowance = await self.allowance_manager.ensure_allowance(
            session.source_token,
            signer,
            session.quote.approve_to,
            session.amount,
        )
        session.advance(SessionState.APPROVED)

        request = TransactionRequest.for_chain(
            chain,
            to=session.quote.to,
            data=session.quote.data,
            value=session.quote.value,
        )
        session.swap_outcome = await self.submitter.submit(request, signer)
        session.advance(SessionState.SUBMITTED)

        # From here on the swap is in flight and must not be resubmitted
        session.finality = await self.poller.poll(chain, session.swap_outcome.tx_hash)
        if not session.finality.settled:
            session.advance(SessionState.STUCK)
            raise FinalityTimeout(
                int(chain), session.swap_outcome.tx_hash, reason=session.finality.reason
            )

        session.advance(SessionState.SETTLED)
        logger.info(f"Cross-chain swap settled: {session.swap_outcome.tx_hash}")

    @staticmethod
    def _fail(session: SwapSession, error: str) -> None:
        session.error = error
        if not session.state.is_terminal:
            session.advance(SessionState.FAILED)

    async def _record_final_balances(self, session: SwapSession) -> None:
        try:
            session.balances_after = await self.get_balances(session)
        except Exception as e:
            # Diagnostics only, never masks the session outcome
            logger.warning(f"Could not read final balances: {type(e).__name__}: {e}")
