"""Pytest configuration and fixtures."""

import json
from typing import Callable, Optional

import httpx
import pytest
from pydantic import SecretStr

from xchainswap.aggregator.symbiosis import SymbiosisClient
from xchainswap.chains import AVAILABLE_TOKENS, Chain, Token
from xchainswap.config import SessionConfig
from xchainswap.swap.signer import AllowanceQueryUnsupported, ChainSigner
from xchainswap.swap.transactions import TransactionRequest
from xchainswap.utils.locks import clear_wallet_locks

WALLET = "0x1111111111111111111111111111111111111111"
ROUTER = "0x2222222222222222222222222222222222222222"
TEST_PRIVATE_KEY = "0x" + "ab" * 32

ETH = AVAILABLE_TOKENS[Chain.ETH_MAINNET]["ETH"]
ETH_USDC = AVAILABLE_TOKENS[Chain.ETH_MAINNET]["USDC"]
MNT = AVAILABLE_TOKENS[Chain.MANTLE_MAINNET]["MNT"]
MANTLE_USDC = AVAILABLE_TOKENS[Chain.MANTLE_MAINNET]["USDC"]

SWAP_ENV_VARS = (
    "SWAP_IN_CHAINID",
    "SWAP_IN_AMOUNT",
    "SWAP_IN_TOKEN_SYMBOL",
    "SWAP_OUT_CHAINID",
    "SWAP_OUT_TOKEN_SYMBOL",
    "SLIPPAGE_TOLERANCE",
    "PRIVATE_KEY",
    "PROVIDER_API_KEY",
    "ETH_RPC_URL",
    "MANTLE_RPC_URL",
    "SYMBIOSIS_API_BASE_URL",
    "SYMBIOSIS_API_TX_MAX_POLLS",
    "SYMBIOSIS_API_TX_POLL_INTERVAL_MS",
    "TREAT_REVERTED_AS_TERMINAL",
    "ASSUME_APPROVED_WITHOUT_ALLOWANCE_ABI",
    "DEBUG",
    "LOG_LEVEL",
)


class FakeSigner(ChainSigner):
    """In-memory signer recording what would have been sent on-chain."""

    def __init__(
        self,
        chain: Chain,
        address: str = WALLET,
        balances: Optional[dict[str, int]] = None,
        allowance: int = 0,
        allowance_supported: bool = True,
        receipt_statuses: Optional[list[int]] = None,
        receipt_timeout: bool = False,
        send_error: Optional[Exception] = None,
        balance_error: Optional[Exception] = None,
    ):
        super().__init__(chain)
        self._address = address
        self.balances = dict(balances or {})
        self.allowance = allowance
        self.allowance_supported = allowance_supported
        self.receipt_statuses = list(receipt_statuses or [])
        self.receipt_timeout = receipt_timeout
        self.send_error = send_error
        self.balance_error = balance_error
        self.sent: list[TransactionRequest] = []
        self.allowance_queries = 0
        self.balance_reads = 0

    @property
    def address(self) -> str:
        return self._address

    async def get_balance(self, token: Token) -> int:
        self.balance_reads += 1
        if self.balance_error is not None:
            raise self.balance_error
        return self.balances.get(token.symbol, 0)

    async def get_allowance(self, token: Token, spender: str) -> int:
        self.allowance_queries += 1
        if not self.allowance_supported:
            raise AllowanceQueryUnsupported(f"{token} has no allowance()")
        return self.allowance

    async def build_approval(self, token: Token, spender: str, amount: int) -> TransactionRequest:
        data = "0x095ea7b3" + spender[2:].lower().rjust(64, "0") + format(amount, "064x")
        return TransactionRequest.for_chain(self.chain, to=token.address, data=data)

    async def send_transaction(self, request: TransactionRequest) -> str:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(request)
        return "0x" + format(len(self.sent), "064x")

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 300.0) -> dict:
        if self.receipt_timeout:
            raise TimeoutError(f"Transaction {tx_hash} not confirmed after {timeout}s")
        status = self.receipt_statuses.pop(0) if self.receipt_statuses else 1
        return {"status": status, "blockNumber": 100 + len(self.sent), "transactionHash": tx_hash}


class FakeSignerFactory:
    """Hands out pre-built FakeSigners per chain."""

    def __init__(self, signers: dict[Chain, FakeSigner]):
        self.signers = signers

    def get_signer(self, chain: Chain) -> FakeSigner:
        return self.signers[chain]


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> SymbiosisClient:
    """SymbiosisClient whose requests are answered by handler."""
    return SymbiosisClient(
        base_url="https://symbiosis.test/crosschain",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content.decode())


def swap_response(
    chain_id: int = 1,
    value: str = "50000000000000000",
    min_out: str = "120000000",
    min_out_decimals: int = 6,
    approve_to: str = ROUTER,
) -> dict:
    """A Symbiosis /v1/swap response body."""
    return {
        "tx": {
            "chainId": chain_id,
            "to": ROUTER,
            "data": "0xdeadbeef",
            "value": value,
        },
        "tokenAmountOut": {
            "address": MANTLE_USDC.address,
            "chainId": 5000,
            "decimals": min_out_decimals,
            "symbol": "USDC",
            "amount": "123000000",
        },
        "tokenAmountOutMin": {
            "address": MANTLE_USDC.address,
            "chainId": 5000,
            "decimals": min_out_decimals,
            "symbol": "USDC",
            "amount": min_out,
        },
        "priceImpact": "-0.12",
        "approveTo": approve_to,
        "estimatedTime": 600,
        "type": "evm",
    }


def status_response(code: int, dest_hash: str = "0x" + "cd" * 32, dest_chain: int = 5000) -> dict:
    """A Symbiosis /v1/tx response body."""
    body = {"status": {"code": code, "text": {0: "Success", 1: "Pending", 2: "Stucked", 3: "Reverted"}.get(code, "")}}
    if code == 0:
        body["tx"] = {"hash": dest_hash, "chainId": dest_chain}
    return body


def make_session_config(
    source: Token = ETH,
    destination: Token = MANTLE_USDC,
    amount: str = "0.05",
    **overrides,
) -> SessionConfig:
    params = dict(
        source_token=source,
        destination_token=destination,
        amount=amount,
        slippage_bps=300,
        private_key=SecretStr(TEST_PRIVATE_KEY),
        rpc_urls={
            Chain.ETH_MAINNET: "https://eth-mainnet.g.alchemy.com/v2/test-key",
            Chain.MANTLE_MAINNET: "https://mantle-mainnet.g.alchemy.com/v2/test-key",
        },
        aggregator_base_url="https://symbiosis.test/crosschain",
        max_poll_count=3,
        poll_interval_seconds=0.0,
        http_timeout_seconds=5.0,
        receipt_timeout_seconds=5.0,
        lock_timeout_seconds=1.0,
    )
    params.update(overrides)
    return SessionConfig(**params)


@pytest.fixture(autouse=True)
def reset_wallet_locks():
    """Locks are bound to an event loop; start every test with none."""
    clear_wallet_locks()
    yield
    clear_wallet_locks()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove swap variables inherited from the shell."""
    for name in SWAP_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def swap_env(clean_env):
    """A complete, valid ETH -> Mantle USDC environment."""
    clean_env.setenv("SWAP_IN_CHAINID", "1")
    clean_env.setenv("SWAP_IN_AMOUNT", "0.05")
    clean_env.setenv("SWAP_IN_TOKEN_SYMBOL", "ETH")
    clean_env.setenv("SWAP_OUT_CHAINID", "5000")
    clean_env.setenv("SWAP_OUT_TOKEN_SYMBOL", "USDC")
    clean_env.setenv("PRIVATE_KEY", TEST_PRIVATE_KEY)
    clean_env.setenv("PROVIDER_API_KEY", "test-key")
    return clean_env


class FakeClock:
    """Monotonic clock advanced by a fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
