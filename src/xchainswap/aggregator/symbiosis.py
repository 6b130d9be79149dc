"""Symbiosis cross-chain API integration.

Symbiosis computes a cross-chain route, returns the transaction to submit on
the source chain, and later reports settlement of the destination-chain leg.
API docs: https://docs.symbiosis.finance/developer-tools/symbiosis-api
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from xchainswap.aggregator.models import (
    SwapQuote,
    SwapRequest,
    SwapResponse,
    TokenAmountIn,
    TokenOut,
    TransactionStatusResponse,
)
from xchainswap.chains import Chain, Token
from xchainswap.config import DEFAULT_SYMBIOSIS_API_BASE_URL
from xchainswap.errors import ProtocolError
from xchainswap.utils.amounts import from_readable_amount

logger = logging.getLogger(__name__)

HTTP_HEADERS = {
    "accept": "application/json",
    "Content-Type": "application/json",
}


def _api_address(token: Token) -> str:
    """Symbiosis expects an empty address for native assets."""
    return "" if token.is_native else token.address


class SymbiosisClient:
    """Client for the Symbiosis cross-chain API.

    Performs exactly one HTTP request per call; retries are the caller's
    decision (only the finality poller loops).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SYMBIOSIS_API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: API root, e.g. https://api.symbiosis.finance/crosschain
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "Symbiosis"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=HTTP_HEADERS,
            transport=self._transport,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise ProtocolError(f"{method} {url} failed: {type(e).__name__}: {e}", url=url) from e

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(
                f"{url} returned a non-JSON body", url=url, status_code=response.status_code
            ) from e

    def build_swap_request(
        self,
        token_in: Token,
        amount: str,
        token_out: Token,
        from_address: str,
        to_address: str,
        slippage_bps: int,
    ) -> SwapRequest:
        """Build the route request body for a human-readable amount."""
        return SwapRequest(
            token_amount_in=TokenAmountIn(
                address=_api_address(token_in),
                chain_id=int(token_in.chain),
                decimals=token_in.decimals,
                amount=str(from_readable_amount(amount, token_in.decimals)),
            ),
            token_out=TokenOut(
                address=_api_address(token_out),
                chain_id=int(token_out.chain),
                decimals=token_out.decimals,
            ),
            from_address=from_address,
            to_address=to_address,
            slippage=slippage_bps,
        )

    async def request_swap(
        self,
        token_in: Token,
        amount: str,
        token_out: Token,
        from_address: str,
        to_address: str,
        slippage_bps: int,
    ) -> SwapQuote:
        """Get a swap route and the source-chain transaction.

        Args:
            token_in: Source token
            amount: Source amount in human-readable units (e.g. "0.05")
            token_out: Destination token
            from_address: Sender on the source chain
            to_address: Recipient on the destination chain
            slippage_bps: Slippage tolerance in basis points (300 = 3%)

        Returns:
            SwapQuote with the transaction payload

        Raises:
            ProtocolError: On non-2xx responses or unusable payloads
        """
        url = f"{self.base_url}/v1/swap"
        body = self.build_swap_request(
            token_in, amount, token_out, from_address, to_address, slippage_bps
        )

        logger.info(f"Requesting Symbiosis route: {amount} {token_in} -> {token_out}")
        response = await self._request(
            "POST", url, json=body.model_dump(by_alias=True)
        )

        if not response.is_success:
            raise ProtocolError(
                f"fetch POST url: {url}, got non-OK status code: {response.status_code} "
                f"- {response.text[:200]}",
                url=url,
                status_code=response.status_code,
            )

        data = self._json(response, url)
        if not isinstance(data, dict) or "tx" not in data:
            raise ProtocolError(f"{url} response has no tx field", url=url)

        try:
            quote = SwapQuote.from_response(SwapResponse.model_validate(data))
        except (ValidationError, ValueError) as e:
            raise ProtocolError(f"Invalid swap response from {url}: {e}", url=url) from e

        logger.info(
            f"Symbiosis route: min out {quote.min_amount_out_readable} {token_out.symbol}, "
            f"approve to {quote.approve_to}, estimated {quote.estimated_time_seconds}s"
        )
        return quote

    async def get_transaction_status(
        self,
        chain: Chain,
        tx_hash: str,
    ) -> Optional[TransactionStatusResponse]:
        """Get the cross-chain status of a source-chain transaction.

        Returns:
            Parsed status, or None when the API has not indexed the
            transaction yet (HTTP 404)

        Raises:
            ProtocolError: On any other non-2xx response or a malformed body
        """
        url = f"{self.base_url}/v1/tx/{int(chain)}/{tx_hash}"
        response = await self._request("GET", url)

        if response.status_code == 404:
            return None

        if not response.is_success:
            raise ProtocolError(
                f"fetch GET url: {url}, got non-OK and non-404 status code: "
                f"{response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        data = self._json(response, url)
        try:
            return TransactionStatusResponse.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(f"Invalid status response from {url}: {e}", url=url) from e
