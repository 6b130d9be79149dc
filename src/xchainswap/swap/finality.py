"""Cross-chain finality polling.

The destination-chain leg of a Symbiosis swap is relayed off-chain and settles
minutes after the source transaction. Finality is determined by polling the
aggregator's status endpoint at a fixed interval:

- 404 / NOT_FOUND / PENDING: not terminal, wait and poll again
- SUCCESS: settled
- STUCKED: terminal failure, stop immediately
- REVERTED: not terminal unless treat_reverted_as_terminal is set
- any other HTTP error: ProtocolError, no further polling

At most max_poll_count queries are made, so the worst-case wait is about
max_poll_count * poll_interval.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from xchainswap.aggregator.models import TransactionStatusCode, TransactionStatusResponse
from xchainswap.aggregator.symbiosis import SymbiosisClient
from xchainswap.chains import Chain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalityResult:
    """Outcome of a polling run."""

    settled: bool
    reason: str  # success, stuck, reverted, timeout or deadline
    attempts: int
    last_status: Optional[TransactionStatusResponse] = None

    @property
    def destination_tx_hash(self) -> Optional[str]:
        if self.last_status and self.last_status.tx:
            return self.last_status.tx.hash
        return None


class FinalityPoller:
    """Polls the aggregator until a cross-chain swap is settled, stuck or timed out."""

    def __init__(
        self,
        client: SymbiosisClient,
        max_poll_count: int = 15,
        poll_interval: float = 60.0,
        treat_reverted_as_terminal: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize poller.

        Args:
            client: Aggregator client
            max_poll_count: Maximum number of status queries
            poll_interval: Seconds between queries
            treat_reverted_as_terminal: Stop on REVERTED instead of polling on
            sleep: Wait coroutine (cancellable)
            clock: Monotonic clock used for deadlines
        """
        if max_poll_count < 1:
            raise ValueError("max_poll_count must be at least 1")
        self.client = client
        self.max_poll_count = max_poll_count
        self.poll_interval = poll_interval
        self.treat_reverted_as_terminal = treat_reverted_as_terminal
        self._sleep = sleep
        self._clock = clock

    async def wait_for_success(
        self,
        chain: Chain,
        tx_hash: str,
        timeout: Optional[float] = None,
    ) -> bool:
        """Return True once the swap is confirmed, False if stuck or timed out."""
        result = await self.poll(chain, tx_hash, timeout=timeout)
        return result.settled

    async def poll(
        self,
        chain: Chain,
        tx_hash: str,
        timeout: Optional[float] = None,
    ) -> FinalityResult:
        """Poll the status of a source-chain swap transaction.

        Args:
            chain: Chain the swap transaction was submitted on
            tx_hash: Source-chain transaction hash
            timeout: Optional overall budget in seconds; polling stops early
                when the next wait would overrun it

        Returns:
            FinalityResult

        Raises:
            ProtocolError: On non-404 HTTP errors or malformed responses
            asyncio.CancelledError: If the awaiting task is cancelled
        """
        deadline = self._clock() + timeout if timeout is not None else None
        attempts = 0
        last_status: Optional[TransactionStatusResponse] = None

        while attempts < self.max_poll_count:
            response = await self.client.get_transaction_status(chain, tx_hash)
            attempts += 1

            if response is None:
                logger.info(
                    f"remaining txs on non-source chains are not yet published by Symbiosis API "
                    f"(attempt {attempts}/{self.max_poll_count})"
                )
            else:
                last_status = response
                code = response.status.code

                if code == TransactionStatusCode.SUCCESS:
                    dest = response.tx
                    if dest is not None:
                        logger.info(
                            f"swap tx on chain {dest.chain_id} with hash {dest.hash} is successful, "
                            f"cross-chain swap complete"
                        )
                    else:
                        logger.info(f"cross-chain swap for {tx_hash} complete")
                    return FinalityResult(True, "success", attempts, response)

                if code == TransactionStatusCode.STUCKED:
                    logger.error(
                        f"Symbiosis reports swap {tx_hash} as stuck: {response.status.text}"
                    )
                    return FinalityResult(False, "stuck", attempts, response)

                if code == TransactionStatusCode.REVERTED:
                    if self.treat_reverted_as_terminal:
                        logger.error(f"Symbiosis reports swap {tx_hash} as reverted")
                        return FinalityResult(False, "reverted", attempts, response)
                    logger.warning(
                        f"Symbiosis reports swap {tx_hash} as reverted, continuing to poll "
                        f"(attempt {attempts}/{self.max_poll_count})"
                    )
                else:
                    logger.info(
                        f"remaining tx on non-source chains is {code.name.lower()} "
                        f"(attempt {attempts}/{self.max_poll_count})"
                    )

            # No wait after the last permitted query
            if attempts >= self.max_poll_count:
                break

            if not await self._wait(tx_hash, deadline):
                logger.warning(f"Polling deadline reached for {tx_hash} after {attempts} queries")
                return FinalityResult(False, "deadline", attempts, last_status)

        logger.warning(
            f"Cross-chain swap {tx_hash} not confirmed after {attempts} queries "
            f"(~{attempts * self.poll_interval:.0f}s)"
        )
        return FinalityResult(False, "timeout", attempts, last_status)

    async def _wait(self, tx_hash: str, deadline: Optional[float]) -> bool:
        """Sleep one poll interval.

        Returns False without sleeping when the deadline leaves no room for
        another query.
        """
        if deadline is not None and deadline - self._clock() < self.poll_interval:
            return False

        logger.debug(f"Waiting {self.poll_interval}s before polling {tx_hash} again")
        try:
            await self._sleep(self.poll_interval)
        except asyncio.CancelledError:
            logger.warning(f"Polling for {tx_hash} cancelled")
            raise
        return True
