"""Session configuration using pydantic-settings.

Settings are read once from environment variables (and an optional .env file)
and frozen into a SessionConfig that is passed explicitly to every component.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from xchainswap.chains import CHAINS, Chain, Token, get_token
from xchainswap.errors import ConfigError
from xchainswap.utils.amounts import from_readable_amount

DEFAULT_SYMBIOSIS_API_BASE_URL = "https://api.symbiosis.finance/crosschain"

_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    """Raw settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Swap parameters
    # ======================
    swap_in_chainid: Chain = Field(..., description="Source chain id")
    swap_in_amount: str = Field(..., description="Source amount as a decimal string")
    swap_in_token_symbol: str = Field(..., description="Source token symbol")
    swap_out_chainid: Chain = Field(..., description="Destination chain id")
    swap_out_token_symbol: str = Field(..., description="Destination token symbol")
    slippage_tolerance: int = Field(
        default=300, ge=0, le=10000, description="Slippage tolerance in basis points (300 = 3%)"
    )

    # ======================
    # Wallet
    # ======================
    private_key: SecretStr = Field(..., description="Hex private key of the swapping wallet")

    # ======================
    # Chain RPC Endpoints
    # ======================
    provider_api_key: str = Field(default="", description="Alchemy API key")
    eth_rpc_url: Optional[str] = Field(default=None, description="Ethereum RPC URL override")
    mantle_rpc_url: Optional[str] = Field(default=None, description="Mantle RPC URL override")

    # ======================
    # Symbiosis API
    # ======================
    symbiosis_api_base_url: str = Field(
        default=DEFAULT_SYMBIOSIS_API_BASE_URL, description="Symbiosis cross-chain API URL"
    )
    # txs take ~10m to be published by the Symbiosis API
    symbiosis_api_tx_max_polls: int = Field(
        default=15, ge=1, description="Maximum transaction status queries"
    )
    symbiosis_api_tx_poll_interval_ms: int = Field(
        default=60000, gt=0, description="Delay between status queries in milliseconds"
    )

    # ======================
    # Timeouts and policies
    # ======================
    http_timeout_seconds: float = Field(default=30.0, gt=0, description="Aggregator request timeout")
    receipt_timeout_seconds: float = Field(
        default=300.0, gt=0, description="Maximum wait for transaction inclusion"
    )
    lock_timeout_seconds: float = Field(default=30.0, gt=0, description="Wallet lock wait")
    assume_approved_without_allowance_abi: bool = Field(
        default=True,
        description="Treat tokens without an allowance() method as not needing approval",
    )
    treat_reverted_as_terminal: bool = Field(
        default=False, description="Stop polling when the aggregator reports REVERTED"
    )

    # ======================
    # Logging
    # ======================
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Log level when debug is off")

    @field_validator("swap_in_chainid", "swap_out_chainid", mode="before")
    @classmethod
    def _parse_chain_id(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value.strip())
        return value

    @field_validator("swap_in_amount")
    @classmethod
    def _validate_amount(cls, value: str) -> str:
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a decimal number: {value!r}")
        if not amount.is_finite() or amount <= 0:
            raise ValueError("must be a positive amount")
        return value.strip()

    @field_validator("swap_in_token_symbol", "swap_out_token_symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return value

    @field_validator("private_key")
    @classmethod
    def _validate_private_key(cls, value: SecretStr) -> SecretStr:
        if not _PRIVATE_KEY_RE.match(value.get_secret_value().strip()):
            raise ValueError("must be a 32-byte hex string")
        return value


# Settings field holding the RPC override for each chain
RPC_URL_FIELDS: dict[Chain, str] = {
    Chain.ETH_MAINNET: "eth_rpc_url",
    Chain.MANTLE_MAINNET: "mantle_rpc_url",
}


@dataclass(frozen=True)
class SessionConfig:
    """Validated, immutable parameters of one swap session."""

    source_token: Token
    destination_token: Token
    amount: str
    slippage_bps: int
    private_key: SecretStr
    rpc_urls: Mapping[Chain, str]
    aggregator_base_url: str = DEFAULT_SYMBIOSIS_API_BASE_URL
    max_poll_count: int = 15
    poll_interval_seconds: float = 60.0
    http_timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 300.0
    lock_timeout_seconds: float = 30.0
    assume_approved_without_allowance_abi: bool = True
    treat_reverted_as_terminal: bool = False
    debug: bool = False
    log_level: str = "INFO"

    @property
    def source_chain(self) -> Chain:
        return self.source_token.chain

    @property
    def destination_chain(self) -> Chain:
        return self.destination_token.chain

    @property
    def max_poll_wait_seconds(self) -> float:
        """Worst-case time spent waiting for finality."""
        return self.max_poll_count * self.poll_interval_seconds

    @property
    def session_deadline_seconds(self) -> float:
        """External deadline for a whole session.

        Covers the poll budget plus approval and swap inclusion plus the
        aggregator requests.
        """
        submission = 2 * self.receipt_timeout_seconds
        requests = (self.max_poll_count + 1) * self.http_timeout_seconds
        return self.max_poll_wait_seconds + submission + requests

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionConfig":
        """Resolve tokens and RPC endpoints from raw settings.

        Raises:
            ConfigError: On unknown token symbols or missing RPC access
        """
        try:
            source_token = get_token(settings.swap_in_chainid, settings.swap_in_token_symbol)
        except ConfigError as e:
            raise ConfigError(str(e), field="SWAP_IN_TOKEN_SYMBOL") from e

        try:
            destination_token = get_token(
                settings.swap_out_chainid, settings.swap_out_token_symbol
            )
        except ConfigError as e:
            raise ConfigError(str(e), field="SWAP_OUT_TOKEN_SYMBOL") from e

        try:
            from_readable_amount(settings.swap_in_amount, source_token.decimals)
        except ValueError as e:
            raise ConfigError(f"SWAP_IN_AMOUNT is invalid: {e}", field="SWAP_IN_AMOUNT") from e

        rpc_urls: dict[Chain, str] = {}
        for chain in dict.fromkeys([source_token.chain, destination_token.chain]):
            override = getattr(settings, RPC_URL_FIELDS[chain])
            if override:
                rpc_urls[chain] = override
            elif settings.provider_api_key:
                rpc_urls[chain] = CHAINS[chain].rpc_url(settings.provider_api_key)
            else:
                raise ConfigError(
                    f"PROVIDER_API_KEY is required (or set {RPC_URL_FIELDS[chain].upper()})",
                    field="PROVIDER_API_KEY",
                )

        return cls(
            source_token=source_token,
            destination_token=destination_token,
            amount=settings.swap_in_amount,
            slippage_bps=settings.slippage_tolerance,
            private_key=settings.private_key,
            rpc_urls=rpc_urls,
            aggregator_base_url=settings.symbiosis_api_base_url.rstrip("/"),
            max_poll_count=settings.symbiosis_api_tx_max_polls,
            poll_interval_seconds=settings.symbiosis_api_tx_poll_interval_ms / 1000,
            http_timeout_seconds=settings.http_timeout_seconds,
            receipt_timeout_seconds=settings.receipt_timeout_seconds,
            lock_timeout_seconds=settings.lock_timeout_seconds,
            assume_approved_without_allowance_abi=settings.assume_approved_without_allowance_abi,
            treat_reverted_as_terminal=settings.treat_reverted_as_terminal,
            debug=settings.debug,
            log_level=settings.log_level.upper(),
        )

    def get_safe_dict(self) -> dict:
        """Return session parameters with secrets redacted."""
        return {
            "source": str(self.source_token),
            "destination": str(self.destination_token),
            "amount": self.amount,
            "slippage_bps": self.slippage_bps,
            "private_key": "***" if self.private_key.get_secret_value() else "(not set)",
            "rpc": {
                chain.display_name: self._redact_url(url) for chain, url in self.rpc_urls.items()
            },
            "aggregator": self.aggregator_base_url,
            "max_poll_count": self.max_poll_count,
            "poll_interval_seconds": self.poll_interval_seconds,
            "policies": {
                "assume_approved_without_allowance_abi": self.assume_approved_without_allowance_abi,
                "treat_reverted_as_terminal": self.treat_reverted_as_terminal,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact the API key path segment of a provider URL."""
        if "/v2/" in url:
            base, _ = url.split("/v2/", 1)
            return f"{base}/v2/***"
        return url


def _config_error_from_validation(error: ValidationError) -> ConfigError:
    """Turn pydantic errors into one ConfigError naming each variable."""
    messages = []
    first_field = None
    for item in error.errors():
        name = str(item["loc"][0]).upper() if item.get("loc") else "CONFIG"
        first_field = first_field or name
        if item.get("type") == "missing":
            messages.append(f"{name} is required")
        else:
            messages.append(f"{name} is invalid: {item.get('msg')}")
    return ConfigError("; ".join(messages), field=first_field)


def load_settings(env_file: Optional[str] = ".env", **overrides: Any) -> Settings:
    """Load raw settings, converting validation failures into ConfigError."""
    try:
        return Settings(_env_file=env_file, **overrides)
    except ValidationError as e:
        raise _config_error_from_validation(e) from e


def load_session_config(env_file: Optional[str] = ".env", **overrides: Any) -> SessionConfig:
    """Load and validate the configuration of one swap session.

    Raises:
        ConfigError: Before any network activity, naming the offending variable
    """
    return SessionConfig.from_settings(load_settings(env_file, **overrides))
