"""Tests for ERC20 allowance reconciliation."""

import pytest

from conftest import ETH, ETH_USDC, ROUTER, FakeSigner
from xchainswap.chains import Chain
from xchainswap.errors import ChainTxFailure
from xchainswap.swap.allowance import AllowanceManager, AllowanceStatus
from xchainswap.swap.signer import AllowanceQueryUnsupported
from xchainswap.swap.transactions import TransactionSubmitter


@pytest.fixture
def manager():
    return AllowanceManager(TransactionSubmitter(receipt_timeout=5.0))


class TestAllowanceManager:
    """Tests for AllowanceManager.ensure_allowance."""

    @pytest.mark.asyncio
    async def test_native_token_never_approves(self, manager):
        """Native assets skip the allowance query entirely."""
        signer = FakeSigner(Chain.ETH_MAINNET)

        decision = await manager.ensure_allowance(ETH, signer, ROUTER, "0.05")

        assert decision.status == AllowanceStatus.NOT_REQUIRED
        assert decision.tx_hash is None
        assert signer.allowance_queries == 0
        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_sufficient_allowance_sends_nothing(self, manager):
        """An existing allowance covering the amount is left alone."""
        signer = FakeSigner(Chain.ETH_MAINNET, allowance=250_000_000)

        decision = await manager.ensure_allowance(ETH_USDC, signer, ROUTER, "250")

        assert decision.status == AllowanceStatus.SUFFICIENT
        assert decision.current_allowance == 250_000_000
        assert decision.required_amount == 250_000_000
        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_zero_allowance_issues_exact_approval(self, manager):
        """Missing allowance results in one approve() for the exact amount."""
        signer = FakeSigner(Chain.ETH_MAINNET, allowance=0)

        decision = await manager.ensure_allowance(ETH_USDC, signer, ROUTER, "12.5")

        assert decision.status == AllowanceStatus.APPROVED
        assert decision.tx_hash is not None
        assert len(signer.sent) == 1

        approval = signer.sent[0]
        assert approval.to == ETH_USDC.address
        assert approval.value == 0
        assert approval.data.startswith("0x095ea7b3")
        assert approval.data.endswith(format(12_500_000, "064x"))

    @pytest.mark.asyncio
    async def test_repeat_after_approval_is_idempotent(self, manager):
        """Once approved, a second check finds the allowance sufficient."""
        signer = FakeSigner(Chain.ETH_MAINNET, allowance=0)
        await manager.ensure_allowance(ETH_USDC, signer, ROUTER, "10")

        signer.allowance = 10_000_000
        decision = await manager.ensure_allowance(ETH_USDC, signer, ROUTER, "10")

        assert decision.status == AllowanceStatus.SUFFICIENT
        assert len(signer.sent) == 1

    @pytest.mark.asyncio
    async def test_unsupported_allowance_assumed_approved(self, manager):
        """Tokens without allowance() are treated as not needing approval."""
        signer = FakeSigner(Chain.ETH_MAINNET, allowance_supported=False)

        decision = await manager.ensure_allowance(ETH_USDC, signer, ROUTER, "1")

        assert decision.status == AllowanceStatus.NOT_REQUIRED
        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_unsupported_allowance_raises_when_policy_disabled(self):
        """The fallback can be turned off."""
        manager = AllowanceManager(
            TransactionSubmitter(receipt_timeout=5.0),
            assume_approved_without_allowance_abi=False,
        )
        signer = FakeSigner(Chain.ETH_MAINNET, allowance_supported=False)

        with pytest.raises(AllowanceQueryUnsupported):
            await manager.ensure_allowance(ETH_USDC, signer, ROUTER, "1")

        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_failed_approval_raises(self, manager):
        """A reverted approve() surfaces as ChainTxFailure."""
        signer = FakeSigner(Chain.ETH_MAINNET, allowance=0, receipt_statuses=[0])

        with pytest.raises(ChainTxFailure) as exc_info:
            await manager.ensure_allowance(ETH_USDC, signer, ROUTER, "1")

        assert exc_info.value.tx_hash == "0x" + format(1, "064x")
