"""Static chain and token registry.

Supports the EVM chains that the Symbiosis cross-chain API can route between:
- Ethereum mainnet (chain id 1)
- Mantle mainnet (chain id 5000)

Gas parameters are static per chain; there is no gas price discovery.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from xchainswap.errors import ConfigError

# Sentinel address for a chain's native asset
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"


class Chain(IntEnum):
    """Supported chains, keyed by EVM chain id."""

    ETH_MAINNET = 1
    MANTLE_MAINNET = 5000

    @property
    def display_name(self) -> str:
        return CHAINS[self].name


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain."""

    name: str
    native_symbol: str
    rpc_url_template: str  # Provider API key is appended
    explorer_url: str

    # Static gas parameters (wei); None means "let the node decide"
    gas_limit: int = 500000
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    def rpc_url(self, api_key: str) -> str:
        """Build the RPC endpoint for a provider API key."""
        return f"{self.rpc_url_template}{api_key}"

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction."""
        return f"{self.explorer_url}/tx/{tx_hash}"


@dataclass(frozen=True)
class Token:
    """Immutable token descriptor."""

    chain: Chain
    address: str
    decimals: int
    symbol: str

    @property
    def is_native(self) -> bool:
        """Native assets have no contract and need no allowance."""
        return self.address.lower() == NATIVE_TOKEN_ADDRESS

    def __str__(self) -> str:
        return f"{self.symbol} ({self.chain.display_name})"


# ======================
# Chain Configurations
# ======================

CHAINS: dict[Chain, ChainConfig] = {
    # Ethereum - 200000 gas was not enough for Symbiosis routes
    Chain.ETH_MAINNET: ChainConfig(
        name="Ethereum",
        native_symbol="ETH",
        rpc_url_template="https://eth-mainnet.g.alchemy.com/v2/",
        explorer_url="https://etherscan.io",
        gas_limit=500000,
        max_fee_per_gas=20_000_000_000,  # 20 gwei
        max_priority_fee_per_gas=20_000_000_000,  # 20 gwei
    ),
    # Mantle - gas limit must be within [2e9, 2e11]; priority fee not recommended
    Chain.MANTLE_MAINNET: ChainConfig(
        name="Mantle",
        native_symbol="MNT",
        rpc_url_template="https://mantle-mainnet.g.alchemy.com/v2/",
        explorer_url="https://mantlescan.xyz",
        gas_limit=2_000_000_000,
        max_fee_per_gas=50_000_000,
    ),
}


# ======================
# Token Registry
# ======================

AVAILABLE_TOKENS: dict[Chain, dict[str, Token]] = {
    Chain.ETH_MAINNET: {
        "ETH": Token(
            chain=Chain.ETH_MAINNET,
            address=NATIVE_TOKEN_ADDRESS,
            decimals=18,
            symbol="ETH",
        ),
        "USDC": Token(
            chain=Chain.ETH_MAINNET,
            address="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
            decimals=6,
            symbol="USDC",
        ),
    },
    Chain.MANTLE_MAINNET: {
        "MNT": Token(
            chain=Chain.MANTLE_MAINNET,
            address=NATIVE_TOKEN_ADDRESS,
            decimals=18,
            symbol="MNT",
        ),
        "USDC": Token(
            chain=Chain.MANTLE_MAINNET,
            address="0x09Bc4E0D864854c6aFB6eB9A9cdF58aC190D0dF9",
            decimals=6,
            symbol="USDC",
        ),
    },
}


def get_chain_config(chain: Chain) -> ChainConfig:
    """Get configuration for a chain."""
    return CHAINS[chain]


def get_token(chain: Chain, symbol: str) -> Token:
    """Resolve a token symbol on a chain.

    Raises:
        ConfigError: If the symbol is not available on the chain
    """
    token = AVAILABLE_TOKENS.get(chain, {}).get(symbol.upper())
    if token is None:
        raise ConfigError(
            f"{CHAINS[chain].name} {symbol} is not available",
            field=symbol,
        )
    return token


def get_available_symbols(chain: Chain) -> list[str]:
    """List token symbols registered for a chain."""
    return sorted(AVAILABLE_TOKENS.get(chain, {}).keys())
