"""Symbiosis API request and response contracts."""

from dataclasses import dataclass
from decimal import Decimal
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    """Base for API payloads: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ======================
# POST /v1/swap
# ======================


class TokenAmountIn(_ApiModel):
    address: str = Field(..., description="Token contract, empty string for native assets")
    chain_id: int = Field(..., alias="chainId")
    decimals: int
    amount: str = Field(..., description="Amount in smallest units")


class TokenOut(_ApiModel):
    address: str = Field(..., description="Token contract, empty string for native assets")
    chain_id: int = Field(..., alias="chainId")
    decimals: int


class SwapRequest(_ApiModel):
    """Body of a swap route request."""

    token_amount_in: TokenAmountIn = Field(..., alias="tokenAmountIn")
    token_out: TokenOut = Field(..., alias="tokenOut")
    from_address: str = Field(..., alias="from")
    to_address: str = Field(..., alias="to")
    slippage: int = Field(..., ge=0, le=10000, description="Slippage in basis points")


class SwapTransaction(_ApiModel):
    """Transaction to submit on the source chain."""

    chain_id: int = Field(..., alias="chainId")
    to: str
    data: str
    value: Optional[str] = "0"


class TokenAmount(_ApiModel):
    address: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    decimals: int
    symbol: Optional[str] = None
    amount: str


class SwapResponse(_ApiModel):
    """Route returned by the aggregator."""

    tx: SwapTransaction
    token_amount_out: Optional[TokenAmount] = Field(default=None, alias="tokenAmountOut")
    token_amount_out_min: TokenAmount = Field(..., alias="tokenAmountOutMin")
    amount_in_usd: Optional[TokenAmount] = Field(default=None, alias="amountInUsd")
    price_impact: Optional[str] = Field(default=None, alias="priceImpact")
    approve_to: str = Field(..., alias="approveTo")
    estimated_time: Optional[float] = Field(default=None, alias="estimatedTime")
    type: Optional[str] = None


# ======================
# GET /v1/tx/{chainId}/{txHash}
# ======================


class TransactionStatusCode(IntEnum):
    """Cross-chain status reported by the aggregator."""

    NOT_FOUND = -1
    SUCCESS = 0
    PENDING = 1
    STUCKED = 2
    REVERTED = 3


class TransactionStatus(_ApiModel):
    code: TransactionStatusCode
    text: str = ""


class CrossChainTokenAmount(_ApiModel):
    address: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    chain_id_from: Optional[int] = Field(default=None, alias="chainIdFrom")
    decimals: Optional[int] = None
    symbol: Optional[str] = None
    amount: Optional[str] = None


class TransactionDetails(_ApiModel):
    hash: str
    chain_id: int = Field(..., alias="chainId")
    token_amount: Optional[CrossChainTokenAmount] = Field(default=None, alias="tokenAmount")
    time: Optional[str] = None
    address: Optional[str] = None


class TransactionStatusResponse(_ApiModel):
    """Status of a cross-chain transaction."""

    status: TransactionStatus
    tx: Optional[TransactionDetails] = None
    tx_in: Optional[TransactionDetails] = Field(default=None, alias="txIn")


# ======================
# Domain result
# ======================


def _parse_quantity(value: str) -> int:
    """Parse a decimal or 0x-prefixed hex quantity."""
    value = value.strip()
    if value.lower().startswith("0x"):
        return int(value, 16)
    return int(value)


@dataclass(frozen=True)
class SwapQuote:
    """A usable swap route: what to submit and what to expect."""

    chain_id: int
    to: str
    data: str
    value: int
    min_amount_out: int
    min_amount_out_decimals: int
    approve_to: str
    expected_amount_out: Optional[int] = None
    price_impact: Optional[str] = None
    estimated_time_seconds: Optional[float] = None

    @property
    def min_amount_out_readable(self) -> Decimal:
        return Decimal(self.min_amount_out).scaleb(-self.min_amount_out_decimals)

    @classmethod
    def from_response(cls, response: SwapResponse) -> "SwapQuote":
        out = response.token_amount_out
        return cls(
            chain_id=response.tx.chain_id,
            to=response.tx.to,
            data=response.tx.data,
            value=_parse_quantity(response.tx.value or "0"),
            min_amount_out=int(response.token_amount_out_min.amount),
            min_amount_out_decimals=response.token_amount_out_min.decimals,
            approve_to=response.approve_to,
            expected_amount_out=int(out.amount) if out else None,
            price_impact=response.price_impact,
            estimated_time_seconds=response.estimated_time,
        )
