"""Transaction signer for EVM chains.

Holds the wallet key, signs transactions locally with eth-account and talks
to each chain through a web3.py HTTP provider:
- native and ERC20 balances
- ERC20 allowance queries and approve() calldata
- raw transaction submission and receipt lookup
"""

import asyncio
import logging
from typing import Mapping, Optional

from eth_account import Account
from web3 import Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    TransactionNotFound,
    Web3Exception,
)

from xchainswap.chains import Chain, Token
from xchainswap.errors import ChainQueryError, ChainTxFailure, ConfigError
from xchainswap.swap.transactions import TransactionRequest

logger = logging.getLogger(__name__)

# Node and transport failures; requests.RequestException is an OSError.
# Older nodes report JSON-RPC errors as ValueError.
RPC_ERRORS = (Web3Exception, ValueError, OSError)

ERC20_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


class AllowanceQueryUnsupported(ChainQueryError):
    """The token contract does not answer allowance() like an ERC20."""

    pass


class ChainSigner:
    """Base class for chain-specific signing and state queries."""

    def __init__(self, chain: Chain):
        self.chain = chain

    @property
    def address(self) -> str:
        """Wallet address."""
        raise NotImplementedError

    async def get_balance(self, token: Token) -> int:
        """Balance of the wallet in the token's smallest units."""
        raise NotImplementedError

    async def get_allowance(self, token: Token, spender: str) -> int:
        """ERC20 allowance granted by the wallet to spender.

        Raises:
            AllowanceQueryUnsupported: If the contract has no allowance() method
        """
        raise NotImplementedError

    async def build_approval(self, token: Token, spender: str, amount: int) -> TransactionRequest:
        """Build an approve(spender, amount) transaction."""
        raise NotImplementedError

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Sign and broadcast a transaction, returning its hash."""
        raise NotImplementedError

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 300.0) -> dict:
        """Wait until the transaction is included and return its receipt.

        Raises:
            TimeoutError: If no receipt appears within timeout
        """
        raise NotImplementedError


class EVMSigner(ChainSigner):
    """Signer for one EVM chain backed by web3.py."""

    def __init__(
        self,
        private_key: str,
        chain: Chain,
        rpc_url: str,
        receipt_poll_interval: float = 2.0,
    ):
        super().__init__(chain)
        self.rpc_url = rpc_url
        self.receipt_poll_interval = receipt_poll_interval
        self._account = Account.from_key(private_key)
        self._web3: Optional[Web3] = None

    @property
    def web3(self) -> Web3:
        """Lazy load web3 instance."""
        if self._web3 is None:
            self._web3 = Web3(Web3.HTTPProvider(self.rpc_url))
        return self._web3

    @property
    def address(self) -> str:
        return self._account.address

    def _token_contract(self, token: Token):
        return self.web3.eth.contract(
            address=Web3.to_checksum_address(token.address),
            abi=ERC20_ABI,
        )

    async def get_balance(self, token: Token) -> int:
        try:
            if token.is_native:
                return self.web3.eth.get_balance(self.address)
            return self._token_contract(token).functions.balanceOf(self.address).call()
        except RPC_ERRORS as e:
            raise ChainQueryError(
                f"Balance query for {token} failed: {type(e).__name__}: {e}"
            ) from e

    async def get_allowance(self, token: Token, spender: str) -> int:
        contract = self._token_contract(token)
        try:
            return contract.functions.allowance(
                self.address, Web3.to_checksum_address(spender)
            ).call()
        except (ContractLogicError, BadFunctionCallOutput) as e:
            raise AllowanceQueryUnsupported(
                f"{token} at {token.address} does not support allowance(): {e}"
            ) from e
        except RPC_ERRORS as e:
            raise ChainQueryError(
                f"Allowance query for {token} failed: {type(e).__name__}: {e}"
            ) from e

    async def build_approval(self, token: Token, spender: str, amount: int) -> TransactionRequest:
        data = self._token_contract(token).encode_abi(
            "approve", args=[Web3.to_checksum_address(spender), amount]
        )
        return TransactionRequest.for_chain(self.chain, to=token.address, data=data)

    def _fill_fees(self, tx_params: dict) -> None:
        """Complete fee fields the chain configuration leaves open."""
        if "maxFeePerGas" in tx_params:
            if "maxPriorityFeePerGas" not in tx_params:
                # Capped by the static max fee
                tx_params["maxPriorityFeePerGas"] = min(
                    self.web3.eth.max_priority_fee, tx_params["maxFeePerGas"]
                )
        elif "gasPrice" not in tx_params:
            tx_params["gasPrice"] = self.web3.eth.gas_price

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Sign and broadcast a transaction.

        Raises:
            ChainQueryError: On a chain mismatch, or when the node rejects or
                cannot be reached before the transaction is broadcast
        """
        if request.chain_id != int(self.chain):
            raise ChainQueryError(
                f"Transaction for chain {request.chain_id} cannot be sent on {self.chain.display_name}"
            )

        tx_params = request.to_tx_params()
        tx_params["to"] = Web3.to_checksum_address(tx_params["to"])
        tx_params["from"] = self.address

        try:
            # Pending count so a queued transaction from this wallet is not replaced
            tx_params["nonce"] = self.web3.eth.get_transaction_count(self.address, "pending")

            if "gas" not in tx_params:
                tx_params["gas"] = self.web3.eth.estimate_gas(tx_params)

            self._fill_fees(tx_params)

            signed_tx = self._account.sign_transaction(tx_params)
            tx_hash = self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except RPC_ERRORS as e:
            logger.error(
                f"Sending transaction on {self.chain.display_name} failed: {type(e).__name__}: {e}"
            )
            raise ChainQueryError(
                f"Transaction not sent on {self.chain.display_name}: {type(e).__name__}: {e}"
            ) from e

        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 300.0) -> dict:
        """Poll for the receipt of a broadcast transaction.

        Raises:
            TimeoutError: If no receipt appears within timeout
            ChainTxFailure: If the node fails while the transaction is pending
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            try:
                receipt = self.web3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                receipt = None
            except RPC_ERRORS as e:
                raise ChainTxFailure(
                    tx_hash, reason=f"receipt lookup failed: {type(e).__name__}"
                ) from e

            if receipt is not None:
                return dict(receipt)

            if loop.time() - start_time > timeout:
                raise TimeoutError(f"Transaction {tx_hash} not confirmed after {timeout}s")

            await asyncio.sleep(self.receipt_poll_interval)


class SignerFactory:
    """Creates one signer per chain for the session wallet."""

    def __init__(self, private_key: str, rpc_urls: Mapping[Chain, str]):
        self._private_key = private_key
        self._rpc_urls = dict(rpc_urls)
        self._signers: dict[Chain, ChainSigner] = {}

    @classmethod
    def from_config(cls, config) -> "SignerFactory":
        """Build from a SessionConfig."""
        return cls(config.private_key.get_secret_value(), config.rpc_urls)

    def get_signer(self, chain: Chain) -> ChainSigner:
        """Get the signer for a chain.

        Raises:
            ConfigError: If no RPC endpoint is configured for the chain
        """
        if chain not in self._signers:
            rpc_url = self._rpc_urls.get(chain)
            if not rpc_url:
                raise ConfigError(f"No RPC endpoint configured for {chain.display_name}")
            self._signers[chain] = EVMSigner(self._private_key, chain, rpc_url)
            logger.debug(f"Created signer for {chain.display_name}")
        return self._signers[chain]
