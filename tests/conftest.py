"""Shared test fixtures."""

import pytest

from vaultcore.core.errors import VaultError
from vaultcore.core.math import UINT256_MAX
from vaultcore.core.token import AssetToken
from vaultcore.strategies.idle import IdleStrategy
from vaultcore.vault import Vault

OWNER = "0x00000000000000000000000000000000000000aa"
ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"
STRANGER = "0x000000000000000000000000000000000000dead"

INITIAL_BALANCE = 1_000_000


class BrokenVenue(VaultError):
    """Failure raised by a misbehaving venue integration."""

    code = "broken_venue"


class BrokenDeployStrategy(IdleStrategy):
    """Rejects every deployment of freshly deposited funds."""

    def _deploy_funds(self, assets: int) -> None:
        raise BrokenVenue(f"venue refused {assets}")


class BrokenHarvestStrategy(IdleStrategy):
    """Fails whenever rewards are realized."""

    def _harvest_rewards(self) -> int:
        raise BrokenVenue("reward claim reverted")


def drip(token: AssetToken, strategy: IdleStrategy, amount: int) -> int:
    """Inject ``amount`` of yield into ``strategy`` from the owner."""
    token.mint(OWNER, amount)
    token.approve(strategy.address, amount, caller=OWNER)
    return strategy.drip(amount, caller=OWNER)


@pytest.fixture
def token() -> AssetToken:
    return AssetToken("USD Coin", "USDC", decimals=6)


@pytest.fixture
def vault(token: AssetToken) -> Vault:
    """Empty vault keeping one smallest unit in the buffer."""
    vault = Vault(token, "USDC Yield Vault", "yUSDC", OWNER, min_liquidity=1, auto_rebalance=True)
    for user in (ALICE, BOB):
        token.mint(user, INITIAL_BALANCE)
        token.approve(vault.address, UINT256_MAX, caller=user)
    return vault


@pytest.fixture
def strategy(token: AssetToken, vault: Vault) -> IdleStrategy:
    """Idle strategy registered at 50%."""
    strategy = IdleStrategy(token, vault.address, OWNER)
    vault.add_strategy(strategy, 5000, caller=OWNER)
    return strategy


@pytest.fixture
def funded_vault(vault: Vault, strategy: IdleStrategy) -> Vault:
    """Alice has deposited 1000 units (499 deployed, 501 buffered)."""
    vault.deposit(1000, ALICE, caller=ALICE)
    return vault
