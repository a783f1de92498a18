"""Tests for strategy accounting units."""

import pytest

from conftest import ALICE, OWNER, STRANGER, drip
from vaultcore.core.errors import (
    EnforcedPause,
    InvalidAddress,
    InvalidAmount,
    NativeTransferRejected,
    NotOwner,
    NotVault,
)
from vaultcore.core.math import UINT256_MAX
from vaultcore.core.token import AssetToken
from vaultcore.core.types import ZERO_ADDRESS, EventType
from vaultcore.strategies import BaseStrategy, IdleStrategy, Strategy

VAULT = "0x00000000000000000000000000000000000fa017"
VENUE = "0x0000000000000000000000000000000000ve0e00"


class VenueStrategy(BaseStrategy):
    """Strategy that parks every deposit in an external venue account."""

    def __init__(self, asset: AssetToken, vault: str, owner: str) -> None:
        super().__init__(asset, vault, owner)
        self.freed: list[int] = []

    def _deploy_funds(self, assets: int) -> None:
        self.asset.transfer(VENUE, assets, caller=self.address)

    def _free_funds(self, assets: int) -> int:
        self.freed.append(assets)
        missing = assets - self.idle_assets()
        recall = min(missing, self.asset.balance_of(VENUE))
        if recall > 0:
            self.asset.transfer(self.address, recall, caller=VENUE)
        return min(assets, self.idle_assets())

    def _deployed_assets(self) -> int:
        return self.asset.balance_of(VENUE)


@pytest.fixture
def idle(token: AssetToken) -> IdleStrategy:
    strategy = IdleStrategy(token, VAULT, OWNER)
    token.mint(VAULT, 10_000)
    token.approve(strategy.address, UINT256_MAX, caller=VAULT)
    return strategy


def _history(strategy: BaseStrategy, event_type: EventType):
    return strategy.journal.bus.history(event_type, source=strategy.address)


class TestIdentity:
    def test_names_and_binding(self, idle: IdleStrategy) -> None:
        assert idle.name == "Mock USD Coin Strategy"
        assert idle.symbol == "mUSDCSTRAT"
        assert idle.vault == VAULT
        assert idle.owner == OWNER
        assert isinstance(idle, Strategy)

    def test_zero_vault_rejected(self, token: AssetToken) -> None:
        with pytest.raises(InvalidAddress):
            IdleStrategy(token, ZERO_ADDRESS, OWNER)

    def test_native_payments_rejected(self, idle: IdleStrategy) -> None:
        with pytest.raises(NativeTransferRejected, match="BaseStrategy: no ETH"):
            idle.receive_native(1, caller=VAULT)


class TestVaultOnlyAccess:
    def test_only_vault_may_deposit(self, idle: IdleStrategy, token: AssetToken) -> None:
        token.mint(ALICE, 100)
        token.approve(idle.address, 100, caller=ALICE)

        with pytest.raises(NotVault):
            idle.deposit(100, ALICE, caller=ALICE)
        with pytest.raises(NotVault):
            idle.mint(100, ALICE, caller=OWNER)

    def test_only_vault_may_withdraw(self, idle: IdleStrategy) -> None:
        idle.deposit(100, VAULT, caller=VAULT)

        with pytest.raises(NotVault):
            idle.withdraw(10, OWNER, VAULT, caller=OWNER)
        with pytest.raises(NotVault):
            idle.redeem(10, VAULT, VAULT, caller=STRANGER)

    def test_vault_round_trip(self, idle: IdleStrategy, token: AssetToken) -> None:
        shares = idle.deposit(1000, VAULT, caller=VAULT)

        assert shares == 1000
        assert idle.total_assets() == 1000
        assert idle.reported_managed_assets() == idle.idle_assets() == 1000

        assert idle.redeem(1000, VAULT, VAULT, caller=VAULT) == 1000
        assert token.balance_of(VAULT) == 10_000


class TestYieldAndLoss:
    def test_drip_injects_yield(self, idle: IdleStrategy, token: AssetToken) -> None:
        idle.deposit(1000, VAULT, caller=VAULT)
        before = idle.convert_to_assets(1000)

        total = drip(token, idle, 200)

        assert total == 1200
        assert idle.total_assets() == 1200
        assert idle.convert_to_assets(1000) > before
        event = _history(idle, EventType.YIELD_DRIPPED)[-1]
        assert event.data == {"strategy_id": idle.address, "amount": 200, "total_assets": 1200}

    def test_drip_validation(self, idle: IdleStrategy, token: AssetToken) -> None:
        with pytest.raises(InvalidAmount):
            idle.drip(0, caller=OWNER)

        token.mint(ALICE, 10)
        token.approve(idle.address, 10, caller=ALICE)
        with pytest.raises(NotOwner):
            idle.drip(10, caller=ALICE)

    def test_skim_simulates_loss(self, idle: IdleStrategy, token: AssetToken) -> None:
        idle.deposit(1000, VAULT, caller=VAULT)

        idle.skim(STRANGER, 300, caller=OWNER)

        assert idle.total_assets() == 700
        assert token.balance_of(STRANGER) == 300
        assert idle.max_withdraw(VAULT) == 700

    def test_skim_validation(self, idle: IdleStrategy) -> None:
        idle.deposit(10, VAULT, caller=VAULT)

        with pytest.raises(InvalidAddress):
            idle.skim(ZERO_ADDRESS, 1, caller=OWNER)
        with pytest.raises(NotOwner):
            idle.skim(STRANGER, 1, caller=VAULT)


class TestPause:
    def test_pause_signals_zero_capacity(self, idle: IdleStrategy) -> None:
        idle.deposit(500, VAULT, caller=VAULT)
        idle.set_paused(True, caller=OWNER)

        assert idle.max_deposit(VAULT) == 0
        assert idle.max_mint(VAULT) == 0
        with pytest.raises(EnforcedPause):
            idle.deposit(1, VAULT, caller=VAULT)

        assert idle.withdraw(200, VAULT, VAULT, caller=VAULT) == 200

    def test_vault_cannot_pause(self, idle: IdleStrategy) -> None:
        with pytest.raises(NotOwner):
            idle.set_paused(True, caller=VAULT)


class TestPrivilegedOperations:
    def test_realize_yield_owner_or_vault(self, idle: IdleStrategy) -> None:
        idle.deposit(100, VAULT, caller=VAULT)

        assert idle.realize_yield(caller=OWNER) == 0
        assert idle.realize_yield(caller=VAULT) == 0
        with pytest.raises(NotOwner):
            idle.realize_yield(caller=STRANGER)

        event = _history(idle, EventType.HARVEST)[-1]
        assert event.data == {"strategy_id": idle.address, "pnl": 0, "total_assets": 100}

    def test_emergency_evacuate_sends_everything_to_vault(self, idle: IdleStrategy, token: AssetToken) -> None:
        idle.deposit(800, VAULT, caller=VAULT)
        drip(token, idle, 50)

        amount = idle.emergency_evacuate(caller=OWNER)

        assert amount == 850
        assert idle.total_assets() == 0
        assert token.balance_of(VAULT) == 10_000 - 800 + 850
        assert idle.balance_of(VAULT) == 800  # shares are not burned

    def test_emergency_evacuate_access(self, idle: IdleStrategy) -> None:
        with pytest.raises(NotOwner):
            idle.emergency_evacuate(caller=STRANGER)


class TestVenueHooks:
    @pytest.fixture
    def venue(self, token: AssetToken) -> VenueStrategy:
        strategy = VenueStrategy(token, VAULT, OWNER)
        token.mint(VAULT, 10_000)
        token.approve(strategy.address, UINT256_MAX, caller=VAULT)
        return strategy

    def test_deposit_deploys_funds(self, venue: VenueStrategy) -> None:
        venue.deposit(1000, VAULT, caller=VAULT)

        assert venue.idle_assets() == 0
        assert venue.total_assets() == 1000
        assert venue.max_withdraw(VAULT) == 1000

    def test_withdraw_frees_funds_when_idle_is_short(self, venue: VenueStrategy, token: AssetToken) -> None:
        venue.deposit(1000, VAULT, caller=VAULT)

        venue.withdraw(400, VAULT, VAULT, caller=VAULT)

        assert venue.freed == [400]
        assert venue.total_assets() == 600
        assert token.balance_of(VAULT) == 10_000 - 600

    def test_evacuate_recalls_venue_funds(self, venue: VenueStrategy) -> None:
        venue.deposit(1000, VAULT, caller=VAULT)

        assert venue.emergency_evacuate(caller=OWNER) == 1000
        assert venue.freed == [UINT256_MAX]
        assert venue.total_assets() == 0
